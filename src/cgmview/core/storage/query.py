"""In-process evaluation of ``Query`` filters over plain documents.

Both the in-memory and the SQLite record sources evaluate filters here, so
they agree on the semantics of ``$gte``, ``$eq`` and ``$in``. ISO-8601
strings are compared as instants, not lexically, so ``...Z`` and ``+00:00``
spellings of the same moment match.
"""

from __future__ import annotations

from typing import Any, Iterable

from cgmview.core.storage.models import Query, QueryError
from cgmview.core.times import parse_mills

_OPERATORS = ("$gte", "$eq", "$in")


def _comparable(value: Any) -> tuple[int, Any]:
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        mills = parse_mills(value)
        if mills is not None:
            return (1, mills)
        return (2, value)
    return (3, str(value))


def _gte(actual: Any, bound: Any) -> bool:
    if actual is None:
        return False
    a, b = _comparable(actual), _comparable(bound)
    if a[0] != b[0]:
        return False
    return a[1] >= b[1]


def _eq(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    if isinstance(actual, str) and isinstance(expected, str):
        a, e = _comparable(actual), _comparable(expected)
        return a[0] == 1 and a == e
    return False


def _match_field(actual: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        return _eq(actual, condition)
    for op, operand in condition.items():
        if op == "$gte":
            if not _gte(actual, operand):
                return False
        elif op == "$eq":
            if not _eq(actual, operand):
                return False
        elif op == "$in":
            if not any(_eq(actual, candidate) for candidate in operand):
                return False
        else:
            raise QueryError(f"Unsupported query operator {op!r}; expected one of {_OPERATORS}")
    return True


def matches(document: dict[str, Any], find: dict[str, Any]) -> bool:
    """True if ``document`` satisfies every clause of ``find``."""
    return all(_match_field(document.get(name), cond) for name, cond in find.items())


def apply_query(documents: Iterable[dict[str, Any]], query: Query) -> list[dict[str, Any]]:
    """Filter, sort and cap ``documents`` according to ``query``.

    Raises:
        QueryError: If the query uses an operator or sort direction that is
            not supported.
    """
    selected = [doc for doc in documents if matches(doc, query.find)]

    # Stable sort applied least-significant key first
    for name, direction in reversed(list(query.sort.items())):
        if direction not in (1, -1):
            raise QueryError(f"Invalid sort direction {direction!r} for field {name!r}")
        selected.sort(key=lambda doc: _comparable(doc.get(name)), reverse=direction == -1)

    if query.count is not None:
        selected = selected[: max(query.count, 0)]
    return selected


def lower_bound_mills(query: Query, field_name: str) -> int | None:
    """Return the ``$gte`` bound on ``field_name`` as epoch millis, if any."""
    condition = query.find.get(field_name)
    if not isinstance(condition, dict) or "$gte" not in condition:
        return None
    kind, value = _comparable(condition["$gte"])
    return int(value) if kind == 1 else None
