# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Logging utilities for the handraise package."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from .types import EventPayload, LogEvent

# Configure logger
logger = logging.getLogger(__name__)


def log_approval_event(event_data: LogEvent, level: int = logging.INFO) -> None:
    """
    Log an approval event with standardized format.

    Args:
        event_data: Dictionary containing event information including the event
                   name, trace ID, tool name and other relevant metadata.
        level: Logging level to emit the event at
    """
    logger.log(level, "Approval Event: %s", json.dumps(event_data, default=str))


def create_log_event(event: str, payload: EventPayload) -> LogEvent:
    """
    Create a log event from a gate event name and its payload.

    Args:
        event: Name of the gate event (e.g. approval_requested)
        payload: Structured event payload

    Returns:
        Dictionary containing structured log event data with standardized fields
    """
    log_event: LogEvent = {
        "Event": event,
        "Timestamp": get_current_timestamp(),
    }
    log_event.update(payload)
    return log_event


def get_current_timestamp() -> str:
    """
    Get the current UTC timestamp in ISO format.

    Returns:
        ISO 8601 formatted timestamp string in UTC timezone
    """
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp, accepting a trailing 'Z'; None if unparseable."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class LoggingEventSink:
    """Event sink that writes gate events to the standard logging module."""

    def info(self, event: str, payload: EventPayload) -> None:
        log_approval_event(create_log_event(event, payload), logging.INFO)

    def warn(self, event: str, payload: EventPayload) -> None:
        log_approval_event(create_log_event(event, payload), logging.WARNING)
