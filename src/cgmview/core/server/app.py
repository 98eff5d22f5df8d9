"""cgmview MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from cgmview.core.config.settings import Settings, get_settings
from cgmview.core.storage.database import RecordDatabase
from cgmview.core.storage.encryption import EncryptionError, FieldEncryptor
from cgmview.core.storage.repository import RecordRepository
from cgmview.domains.glucose.connectors import DataContext
from cgmview.domains.glucose.connectors.memory import memory_context
from cgmview.domains.glucose.connectors.sqlite_store import sqlite_context
from cgmview.domains.glucose.loader import DataLoader
from cgmview.domains.glucose.snapshot import Snapshot

logger = logging.getLogger(__name__)


def _build_context(settings: Settings) -> tuple[DataContext, RecordRepository | None]:
    if not settings.encryption_key:
        logger.info(
            "No ENCRYPTION_KEY configured — serving an empty in-memory record store. "
            "Set ENCRYPTION_KEY to read the SQLite record store."
        )
        return memory_context(), None
    try:
        encryptor = FieldEncryptor(settings.encryption_key)
    except EncryptionError as exc:
        logger.error("Failed to initialize storage: %s", exc)
        logger.warning("Continuing with an empty in-memory record store")
        return memory_context(), None

    database = RecordDatabase(settings.db_path)
    database.initialize()
    repository = RecordRepository(database, encryptor)
    logger.info(
        "Record store initialized: %s (schema v%d)",
        settings.db_path,
        database.get_schema_version(),
    )
    return sqlite_context(repository), repository


def create_app(
    *,
    context_override: DataContext | None = None,
    settings_override: Settings | None = None,
) -> FastMCP:
    """Create and configure the cgmview MCP server.

    1. Creates the FastMCP server instance
    2. Opens the record store (or uses the injected context)
    3. Creates the DataLoader and the snapshot it refreshes
    4. Registers tools
    """
    settings = settings_override or get_settings()

    server = FastMCP(
        "cgmview",
        instructions=(
            "Glucose monitoring snapshot server. Refreshes a time-windowed view of "
            "sensor readings, treatments, profile and device status, and returns it "
            "for display."
        ),
    )

    repository: RecordRepository | None = None
    if context_override is not None:
        context = context_override
    else:
        context, repository = _build_context(settings)

    loader = DataLoader(context, settings)
    snapshot = Snapshot()

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": "cgmview",
            "version": "0.1.0",
            "storage_enabled": repository is not None,
            "devicestatus_advanced": settings.devicestatus_advanced,
            "last_updated": snapshot.last_updated or None,
        }
        if repository is not None:
            status["treatments_stored"] = repository.count("treatments")
        return status

    @server.tool
    async def refresh_snapshot() -> dict:
        """Run one refresh cycle and report what was loaded."""
        result = await loader.update(snapshot)
        return {
            "last_updated": snapshot.last_updated,
            "counts": result.counts,
            "last_profile_from_switch": snapshot.last_profile_from_switch,
            "error": str(result.error) if result.error else None,
        }

    @server.tool
    def get_snapshot() -> dict:
        """Return the most recently refreshed snapshot."""
        return snapshot.to_dict()

    logger.info("Snapshot tools registered")
    return server


# Lazy: only created when this module attribute is requested (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
