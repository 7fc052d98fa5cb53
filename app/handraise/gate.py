# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Approval gate for tool invocations.

The gate looks up the policy verdict for a call and, when approval is
required, suspends on an injected adapter until a human decides. Approved
calls run through the executor (with override arguments when supplied);
denied calls raise ApprovalDeniedError and never reach the executor.
"""

import logging
import uuid
from typing import Callable, Optional

from .constants import ApprovalEvent
from .errors import ApprovalDeniedError, InvalidDecisionError
from .logging_utils import get_current_timestamp
from .policy import ApprovalPolicy, match_policy
from .redaction import prepare_for_display
from .types import (ApprovalAdapter, ApprovalDecision, ApprovalRequest,
                    ApproveDecision, DenyDecision, EventPayload, EventSink,
                    Executor, T, ToolCall)

# Configure logger
logger = logging.getLogger(__name__)


def default_summary(call: ToolCall) -> str:
    """Default human-readable summary for a gated call."""
    return f"Run tool '{call.tool_name}'"


def new_trace_id() -> str:
    """Allocate a fresh trace ID."""
    return str(uuid.uuid4())


def validate_decision(decision: object) -> ApprovalDecision:
    """
    Check that an adapter produced a well-formed decision.

    Raises:
        InvalidDecisionError: If the decision is neither approve nor deny
    """
    if isinstance(decision, (ApproveDecision, DenyDecision)):
        return decision
    raise InvalidDecisionError(decision)


class ApprovalGate:
    """
    Executes tool calls behind an explicit human decision.

    The gate holds only its read-only configuration, so one instance can
    serve any number of concurrent calls.
    """

    def __init__(
        self,
        policy: ApprovalPolicy,
        adapter: ApprovalAdapter,
        event_sink: Optional[EventSink] = None,
        summarize: Optional[Callable[[ToolCall], str]] = None,
        clock: Optional[Callable[[], str]] = None,
        trace_id_factory: Optional[Callable[[], str]] = None
    ):
        """
        Args:
            policy: Approval policy, fixed for the lifetime of the gate
            adapter: Capability that obtains a human decision
            event_sink: Optional destination for approval events
            summarize: Builds the request summary from a call
            clock: Returns the request creation timestamp
            trace_id_factory: Returns a fresh, never reused trace ID
        """
        self._policy = policy
        self._adapter = adapter
        self._event_sink = event_sink
        self._summarize = summarize or default_summary
        self._clock = clock or get_current_timestamp
        self._new_trace_id = trace_id_factory or new_trace_id

    @property
    def policy(self) -> ApprovalPolicy:
        return self._policy

    async def execute_with_approval(self, call: ToolCall, executor: Executor[T]) -> T:
        """
        Run ``executor`` for ``call`` once the policy and, if needed, a human allow it.

        Args:
            call: The tool call to gate
            executor: Coroutine function performing the actual action

        Returns:
            Whatever the executor returns

        Raises:
            ApprovalDeniedError: If the human denies the call
            InvalidDecisionError: If the adapter returns a malformed decision
            Exception: Any exception raised by the executor, unchanged
        """
        match = match_policy(self._policy, call.tool_name)
        if not match.require_approval:
            return await executor(call)

        trace_id = self._new_trace_id()
        request = ApprovalRequest(
            trace_id=trace_id,
            tool_name=call.tool_name,
            summary=self._summarize(call),
            risk_class=match.risk_class,
            display_args=prepare_for_display(call.args, match.display_options),
            created_at=self._clock()
        )

        self._emit_info(ApprovalEvent.REQUESTED, {
            "traceId": trace_id,
            "toolName": call.tool_name,
            "risk": match.risk_class.value
        })
        logger.debug("Requesting approval (ID: %s) for tool %s...", trace_id, call.tool_name)

        decision = validate_decision(await self._adapter.request_approval(request))

        if isinstance(decision, DenyDecision):
            self._emit_warn(ApprovalEvent.DENIED, {
                "traceId": trace_id,
                "toolName": call.tool_name,
                "reason": decision.reason
            })
            raise ApprovalDeniedError(trace_id, call.tool_name, decision.reason)

        self._emit_info(ApprovalEvent.APPROVED, {
            "traceId": trace_id,
            "toolName": call.tool_name
        })

        executed_call = call
        if decision.override_args is not None:
            executed_call = call.with_args(decision.override_args)
        return await executor(executed_call)

    def _emit_info(self, event: ApprovalEvent, payload: EventPayload) -> None:
        if self._event_sink is not None:
            self._event_sink.info(event.value, payload)

    def _emit_warn(self, event: ApprovalEvent, payload: EventPayload) -> None:
        if self._event_sink is not None:
            self._event_sink.warn(event.value, payload)
