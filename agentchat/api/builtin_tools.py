"""Built-in tools for the agentchat service: get_current_time.

Handlers are plain synchronous functions returning dicts; the registry
serializes them into tool_result blocks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from email.utils import format_datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agentchat.api.tools import ToolRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_CURRENT_TIME_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": (
        "Get the current date and time. Returns the current timestamp in ISO format "
        "along with a human-readable format."
    ),
    "properties": {
        "timezone": {
            "type": "string",
            "description": (
                'Optional timezone (e.g., "America/New_York", "Europe/London"). '
                "Defaults to UTC if not specified."
            ),
        },
    },
    "required": [],
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _iso_utc(now: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    return now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _format_en_us(local: datetime) -> str:
    """Render like en-US locale output: 10/19/2026, 3:04:05 PM."""
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
    )


def _resolve_zone(name: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def current_time_tool(
    timezone: str | None = None,
    *,
    _now: Clock = _utc_now,
) -> dict[str, Any]:
    """Return the current time in the requested timezone.

    Args:
        timezone: IANA timezone name; missing or empty means UTC
        _now: Internal clock, overridden in tests

    Returns:
        dict with iso, formatted, timezone, unix_timestamp. An unknown
        timezone falls back to UTC and adds a note instead of failing.
    """
    now = _now()
    tz_name = timezone or "UTC"
    unix_timestamp = int(now.timestamp())

    zone = _resolve_zone(tz_name)
    if zone is None:
        logger.info("Invalid timezone %r requested, defaulting to UTC", tz_name)
        return {
            "iso": _iso_utc(now),
            "formatted": format_datetime(now.astimezone(UTC), usegmt=True),
            "timezone": "UTC",
            "unix_timestamp": unix_timestamp,
            "note": f'Invalid timezone "{tz_name}", defaulted to UTC',
        }

    return {
        "iso": _iso_utc(now),
        "formatted": _format_en_us(now.astimezone(zone)),
        "timezone": tz_name,
        "unix_timestamp": unix_timestamp,
    }


def register_builtin_tools(registry: ToolRegistry, clock: Clock | None = None) -> None:
    """Register built-in tools (get_current_time) with the registry.

    Creates a closure that injects the clock, so tests can pin time.
    """
    now = clock or _utc_now

    def _get_current_time(timezone: str | None = None) -> dict[str, Any]:
        return current_time_tool(timezone, _now=now)

    registry.register("get_current_time", _get_current_time, _CURRENT_TIME_SCHEMA)
