# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.


"""
Human-in-the-loop gating for agent tool calls.

This package keeps side-effecting tool invocations behind an explicit human
decision and lets an agent collect free-form answers from a separate
responder process. It provides:

1. A policy engine deciding which tools need approval and at what risk
2. An approval gate (and decorator) that suspends on a pluggable decision adapter
3. A file-backed prompt bridge for exchanging one question and one answer
   between processes
4. Redaction of call arguments before they are shown or logged

Usage:
    from handraise import ApprovalGate, ApprovalPolicy, ToolCall
    from handraise.adapters import BridgeApprovalAdapter
    from handraise.bridge import PromptBridge

    gate = ApprovalGate(
        policy=ApprovalPolicy(default_require_approval=True, allowlist={"readFile"}),
        adapter=BridgeApprovalAdapter(PromptBridge("/tmp/handraise.json"))
    )
    result = await gate.execute_with_approval(
        ToolCall("deleteFile", {"path": "/tmp/a"}),
        delete_file
    )
"""

from .constants import ResponseAction, RiskClass
from .decorator import approval_gate
from .errors import (ApprovalDeniedError, BridgeLockTimeoutError,
                     HandraiseError, InvalidDecisionError, PolicyConfigError,
                     PromptCapacityError, ResponseTimeoutError)
from .gate import ApprovalGate
from .policy import (ApprovalPolicy, PolicyMatch, ToolRule,
                     default_approval_policy, match_policy, policy_from_dict)
from .redaction import DisplayOptions, RedactionRule, prepare_for_display
from .types import ApprovalRequest, ApproveDecision, DenyDecision, ToolCall

__all__ = [
    'ApprovalDeniedError',
    'ApprovalGate',
    'ApprovalPolicy',
    'ApprovalRequest',
    'ApproveDecision',
    'BridgeLockTimeoutError',
    'DenyDecision',
    'DisplayOptions',
    'HandraiseError',
    'InvalidDecisionError',
    'PolicyConfigError',
    'PolicyMatch',
    'PromptCapacityError',
    'RedactionRule',
    'ResponseAction',
    'ResponseTimeoutError',
    'RiskClass',
    'ToolCall',
    'ToolRule',
    'approval_gate',
    'default_approval_policy',
    'match_policy',
    'policy_from_dict',
    'prepare_for_display',
]
