"""cgmview server entry point — ``python -m cgmview.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from cgmview.core.config.settings import Settings, get_settings
from cgmview.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _store_mode(settings: Settings) -> str:
    if settings.encryption_key:
        return f"sqlite ({settings.db_path})"
    return "in-memory (ENCRYPTION_KEY unset)"


def run() -> None:
    """Start the cgmview MCP server with Streamable HTTP transport.

    Refuses to bind a non-loopback host unless ``CGM_ALLOW_INSECURE_BIND`` is
    set, since the snapshot tools carry no authentication.
    """
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.cgm_log_level.upper(), logging.INFO))

    if not settings.cgm_allow_insecure_bind and not _is_loopback_host(settings.cgm_host):
        raise RuntimeError(
            f"Refusing to bind cgmview to non-loopback host {settings.cgm_host!r}. "
            "Set CGM_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )

    logger.info(
        "Starting cgmview on %s:%d | store: %s | devicestatus: %s | units: %s",
        settings.cgm_host,
        settings.cgm_port,
        _store_mode(settings),
        "advanced (1-day window)" if settings.devicestatus_advanced else "latest only",
        settings.display_units,
    )

    mcp = create_app(settings_override=settings)
    mcp.run(
        transport="streamable-http",
        host=settings.cgm_host,
        port=settings.cgm_port,
    )


if __name__ == "__main__":
    run()
