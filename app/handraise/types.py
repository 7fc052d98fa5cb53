# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Type definitions for the handraise package."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar, Union

from .constants import RiskClass

# Function type for the decorator
F = TypeVar('F', bound=Callable[..., Any])
T = TypeVar('T')

# Type definitions for commonly used structures
ToolArgs = Any
EventPayload = Dict[str, Any]
ApprovalPayload = Dict[str, Any]
ApprovalResponse = Dict[str, Any]
LogEvent = Dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    """A named, argument-bearing request for a side-effecting action."""
    tool_name: str
    args: ToolArgs = None

    def with_args(self, args: ToolArgs) -> "ToolCall":
        """Return a new call for the same tool with ``args`` substituted."""
        return ToolCall(tool_name=self.tool_name, args=args)


@dataclass(frozen=True)
class ApprovalRequest:
    """A pending question to a human about one gated tool call."""
    trace_id: str
    tool_name: str
    summary: str
    risk_class: RiskClass
    display_args: Any
    created_at: str

    def to_dict(self) -> ApprovalPayload:
        """Serialize to a JSON-safe dictionary."""
        return {
            "traceId": self.trace_id,
            "toolName": self.tool_name,
            "summary": self.summary,
            "risk": self.risk_class.value,
            "displayArgs": self.display_args,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class ApproveDecision:
    """Permit the call, optionally replacing its arguments wholesale."""
    override_args: Optional[ToolArgs] = None


@dataclass(frozen=True)
class DenyDecision:
    """Block the call."""
    reason: Optional[str] = None


ApprovalDecision = Union[ApproveDecision, DenyDecision]

Executor = Callable[[ToolCall], Awaitable[T]]


class ApprovalAdapter(Protocol):
    """Capability that obtains a human decision for an approval request."""

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        ...


class EventSink(Protocol):
    """Destination for the structured events emitted by the gate."""

    def info(self, event: str, payload: EventPayload) -> None:
        ...

    def warn(self, event: str, payload: EventPayload) -> None:
        ...


@dataclass
class AskUserOption:
    """A selectable answer offered with a question."""
    label: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label}
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass
class AcceptedAnswer:
    """The structured answer extracted from an accepted form."""
    answer: Union[str, List[str]]
    selected_options: List[str] = field(default_factory=list)
    custom_response: Optional[str] = None
