# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Decision adapters for the approval gate.

An adapter turns an ApprovalRequest into an ApprovalDecision. This module
provides an auto-approving adapter, an adapter that asks through the
prompt bridge, and an adapter that posts requests to an HTTP approval
endpoint.
"""

import asyncio
import json
import logging
from typing import Optional, Tuple

import requests

from . import config
from .ask_user import AskUserInput, ask_user_via_bridge
from .bridge import PromptBridge
from .constants import TIMEOUT_SECONDS, ApprovalStatus, ResponseAction
from .types import (ApprovalDecision, ApprovalPayload, ApprovalRequest,
                    ApprovalResponse, ApproveDecision, AskUserOption,
                    DenyDecision)

# Configure logger
logger = logging.getLogger(__name__)

APPROVE_LABEL = "Approve"
DENY_LABEL = "Deny"


class AutoApproveAdapter:
    """Approves every request without asking anyone."""

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        logger.info("Auto-approving request (ID: %s) for tool %s.", request.trace_id, request.tool_name)
        return ApproveDecision()


def format_approval_question(request: ApprovalRequest) -> AskUserInput:
    """
    Render an approval request as an ask-user question.

    The question offers Approve and Deny; custom text is allowed and used
    as the denial reason.
    """
    arguments = json.dumps(request.display_args, indent=2, sort_keys=True, default=str)
    return AskUserInput(
        header=f"Approval required ({request.risk_class.value} risk)",
        question=f"{request.summary}\nTrace ID: {request.trace_id}\nArguments:\n{arguments}",
        options=[AskUserOption(APPROVE_LABEL), AskUserOption(DENY_LABEL)],
        multiple=False,
        custom=True,
        custom_label="Reason"
    )


class BridgeApprovalAdapter:
    """
    Asks for approval through the prompt bridge.

    Args:
        bridge: Bridge shared with the responder process
        timeout: Seconds to wait for an answer before denying
        poll_interval: Seconds between bridge polls
    """

    def __init__(self, bridge: PromptBridge, timeout: Optional[float] = None, poll_interval: Optional[float] = None):
        self._bridge = bridge
        self._timeout = timeout
        self._poll_interval = poll_interval

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        result = await ask_user_via_bridge(
            self._bridge,
            format_approval_question(request),
            timeout=self._timeout,
            poll_interval=self._poll_interval
        )

        if result.action is ResponseAction.ACCEPT and result.answer == APPROVE_LABEL:
            return ApproveDecision()

        if result.action is ResponseAction.ACCEPT:
            reason = result.custom_response or "denied by responder"
        elif result.timed_out:
            reason = "approval timed out"
        else:
            reason = f"responder chose {result.action.value}"

        logger.warning("Approval denied via bridge (ID: %s): %s", request.trace_id, reason)
        return DenyDecision(reason=reason)


def create_approval_payload(request: ApprovalRequest) -> ApprovalPayload:
    """
    Create the payload for an HTTP approval request.

    Args:
        request: The approval request to send

    Returns:
        Dictionary containing the structured payload, correlated by trace ID
    """
    payload = request.to_dict()
    payload["correlationId"] = request.trace_id
    return payload


def send_approval_request(url: str, payload: ApprovalPayload, timeout: float = TIMEOUT_SECONDS) -> Tuple[bool, Optional[ApprovalResponse]]:
    """
    Send an approval request to the HTTP approval endpoint.

    Args:
        url: Endpoint URL
        payload: Payload for the approval request
        timeout: HTTP request timeout in seconds

    Returns:
        Tuple containing:
        - Boolean indicating success or failure of the HTTP request
        - Response data if successful, None otherwise
    """
    try:
        response = requests.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
        return True, response.json()

    except requests.exceptions.Timeout:
        logger.error("Request to approval endpoint timed out (ID: %s).", payload['correlationId'])
        return False, None

    except requests.exceptions.RequestException as exception:
        logger.error("Error calling approval endpoint (ID: %s): %s", payload['correlationId'], exception)
        return False, None

    except ValueError as exception:
        logger.error("Approval endpoint returned invalid JSON (ID: %s): %s", payload['correlationId'], exception)
        return False, None


def decision_from_response(response_data: Optional[ApprovalResponse]) -> ApprovalDecision:
    """
    Map an approval endpoint response onto a decision.

    Only an explicit Approved status approves; everything else denies with
    a reason describing what happened.
    """
    if not isinstance(response_data, dict):
        return DenyDecision(reason="approval request failed")

    status = response_data.get("status")
    approver = response_data.get("approver", "Unknown")

    if status == ApprovalStatus.APPROVED.value:
        return ApproveDecision(override_args=response_data.get("overrideArgs"))

    if status == ApprovalStatus.REJECTED.value:
        return DenyDecision(reason=response_data.get("reason") or f"rejected by {approver}")

    return DenyDecision(reason=f"approval timed out or status unclear: {status}")


class HttpApprovalAdapter:
    """
    Posts approval requests to an HTTP endpoint and waits for its verdict.

    The endpoint is expected to answer with ``{"status": "Approved"}`` or
    ``{"status": "Rejected", "approver": ..., "reason": ...}``.
    """

    def __init__(self, url: str, timeout: float = TIMEOUT_SECONDS):
        if not url:
            raise ValueError("An approval endpoint URL is required.")
        self._url = url
        self._timeout = timeout

    @classmethod
    def from_config(cls, timeout: float = TIMEOUT_SECONDS) -> "HttpApprovalAdapter":
        """
        Create an adapter for the configured HANDRAISE_APPROVAL_URL.

        Raises:
            ValueError: If HANDRAISE_APPROVAL_URL is not set
        """
        if not config.HANDRAISE_APPROVAL_URL:
            raise ValueError(
                "HANDRAISE_APPROVAL_URL environment variable must be set to use the HTTP approval adapter. "
                "Set this variable to the URL of your approval endpoint."
            )
        return cls(config.HANDRAISE_APPROVAL_URL, timeout=timeout)

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        logger.info("Requesting approval (ID: %s)...", request.trace_id)
        payload = create_approval_payload(request)
        _, response_data = await asyncio.to_thread(send_approval_request, self._url, payload, self._timeout)
        decision = decision_from_response(response_data)
        if isinstance(decision, ApproveDecision):
            logger.info("Approval received (ID: %s).", request.trace_id)
        else:
            logger.warning("Approval not granted (ID: %s): %s", request.trace_id, decision.reason)
        return decision
