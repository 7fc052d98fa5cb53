# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Constants used in the handraise package."""
from enum import Enum


# HTTP approval endpoint configuration
TIMEOUT_SECONDS = 120  # HTTP request timeout in seconds

# Prompt bridge configuration
BRIDGE_VERSION = 1
LOCK_SUFFIX = ".lock"
TEMP_SUFFIX = ".tmp"
LOCK_TIMEOUT_SECONDS = 3.0
LOCK_RETRY_SECONDS = 0.03
DEFAULT_POLL_INTERVAL_SECONDS = 0.35
RESPONDER_POLL_INTERVAL_SECONDS = 0.6
DEFAULT_BRIDGE_PATH = "/tmp/handraise-ask-user-bridge.json"

# Ask user configuration
ASK_USER_OPTION_LIMIT = 25
ASK_USER_TIMEOUT_SECONDS = 5 * 60

# Display defaults
DEFAULT_MAX_DEPTH = 4
DEFAULT_MAX_STRING_LEN = 500
DEFAULT_MAX_ARRAY_LEN = 50
DEFAULT_MAX_OBJECT_KEYS = 50
MAX_DISPLAY_DEPTH = 128  # upper bound on any configured max_depth
DEFAULT_REDACTED_KEYS = ("apiKey", "token", "password")

# Display markers
REDACTED_MARKER = "[REDACTED]"
TRUNCATED_DEPTH_MARKER = "[TRUNCATED_DEPTH]"
TRUNCATED_STRING_SUFFIX = "...[TRUNCATED]"
TRUNCATED_ARRAY_MARKER = "[TRUNCATED_ARRAY]"
TRUNCATED_OBJECT_KEY = "__truncated__"
UNSERIALIZABLE_MARKER = "[UNSERIALIZABLE]"


class RiskClass(str, Enum):
    """
    Coarse severity label attached to a gated call.

    Using string enum for easy JSON serialization while maintaining type safety.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ApprovalEvent(str, Enum):
    """Names of the events emitted by the approval gate."""
    REQUESTED = "approval_requested"
    APPROVED = "approval_approved"
    DENIED = "approval_denied"


class ResponseAction(str, Enum):
    """Actions a responder can take on a bridge prompt."""
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"


class ApprovalStatus(str, Enum):
    """Status values returned by an HTTP approval endpoint."""
    APPROVED = "Approved"
    REJECTED = "Rejected"
    TIMEOUT = "Timeout"
    ERROR = "Error"
