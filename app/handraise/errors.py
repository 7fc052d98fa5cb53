# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Exceptions raised by the handraise package."""

from typing import Optional


class HandraiseError(Exception):
    """Base class for all handraise errors."""


class ApprovalDeniedError(HandraiseError):
    """
    Raised when a human denies a gated tool call.

    Kept distinct from executor failures so callers can tell a human
    rejection apart from a failing tool.
    """

    def __init__(self, trace_id: str, tool_name: str, reason: Optional[str] = None):
        super().__init__(f"Tool invocation denied: {tool_name}")
        self.trace_id = trace_id
        self.tool_name = tool_name
        self.reason = reason


class InvalidDecisionError(HandraiseError):
    """Raised when an approval adapter returns neither an approve nor a deny decision."""

    def __init__(self, decision: object = None):
        super().__init__(f"Invalid human approval decision: {decision!r}")
        self.decision = decision


class BridgeLockTimeoutError(HandraiseError):
    """Raised when the prompt bridge lock cannot be acquired in time."""

    def __init__(self, lock_path: str, timeout: float):
        super().__init__(f"Timed out after {timeout}s acquiring bridge lock '{lock_path}'.")
        self.lock_path = lock_path
        self.timeout = timeout


class PromptCapacityError(HandraiseError):
    """Raised when a prompt is enqueued while a different prompt is still pending."""

    def __init__(self, prompt_id: str, pending_id: str):
        super().__init__(
            "Only one pending askUser prompt is allowed at a time "
            f"(pending: '{pending_id}', rejected: '{prompt_id}')."
        )
        self.prompt_id = prompt_id
        self.pending_id = pending_id


class ResponseTimeoutError(HandraiseError):
    """Raised when no response arrives for a prompt before the deadline."""

    def __init__(self, prompt_id: str):
        super().__init__(f"Timed out waiting for CLI response for prompt '{prompt_id}'.")
        self.prompt_id = prompt_id


class PolicyConfigError(HandraiseError, ValueError):
    """Raised when an approval policy mapping is malformed."""
