# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Approval policy model and matching.

A policy decides, per tool name, whether a call needs human approval, how
risky it is, and how its arguments are shown to the approver. Matching
follows a fixed precedence: allowlist, denylist, per-tool rule, default.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple, Union

from .constants import REDACTED_MARKER, RiskClass
from .errors import PolicyConfigError
from .redaction import DisplayOptions, RedactionRule, default_display_options


@dataclass(frozen=True)
class DisplayOverride:
    """Partial display options; unset fields keep the defaults."""
    max_depth: Optional[int] = None
    max_string_len: Optional[int] = None
    max_array_len: Optional[int] = None
    max_object_keys: Optional[int] = None
    rules: Optional[Tuple[RedactionRule, ...]] = None

    def apply(self, base: DisplayOptions) -> DisplayOptions:
        return base.with_overrides(
            max_depth=self.max_depth,
            max_string_len=self.max_string_len,
            max_array_len=self.max_array_len,
            max_object_keys=self.max_object_keys,
            rules=self.rules
        )


@dataclass(frozen=True)
class ToolRule:
    """A named per-tool override."""
    tool_name: str
    require_approval: Optional[bool] = None
    risk_class: Optional[RiskClass] = None
    display: Optional[DisplayOverride] = None


@dataclass(frozen=True)
class ApprovalPolicy:
    """Immutable approval policy; build a new gate to change it."""
    default_require_approval: bool = True
    allowlist: FrozenSet[str] = field(default_factory=frozenset)
    denylist: FrozenSet[str] = field(default_factory=frozenset)
    tools: Tuple[ToolRule, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowlist", frozenset(self.allowlist))
        object.__setattr__(self, "denylist", frozenset(self.denylist))
        object.__setattr__(self, "tools", tuple(self.tools))

    def find_rule(self, tool_name: str) -> Optional[ToolRule]:
        """Return the first rule for ``tool_name``, if any."""
        for rule in self.tools:
            if rule.tool_name == tool_name:
                return rule
        return None


@dataclass(frozen=True)
class PolicyMatch:
    """Verdict for one tool name under a policy."""
    require_approval: bool
    risk_class: RiskClass
    display_options: DisplayOptions


def default_approval_policy() -> ApprovalPolicy:
    """Return a policy that requires approval for every tool."""
    return ApprovalPolicy(default_require_approval=True)


def match_policy(policy: ApprovalPolicy, tool_name: str) -> PolicyMatch:
    """
    Resolve the approval verdict for a tool.

    Args:
        policy: Policy to evaluate
        tool_name: Name of the tool being called

    Returns:
        The matching verdict; allowlist wins over denylist, which wins over
        per-tool rules, which win over the policy default
    """
    if tool_name in policy.allowlist:
        return PolicyMatch(False, RiskClass.LOW, default_display_options())

    if tool_name in policy.denylist:
        return PolicyMatch(True, RiskClass.HIGH, default_display_options())

    rule = policy.find_rule(tool_name)
    require_approval = policy.default_require_approval
    if rule is not None and rule.require_approval is not None:
        require_approval = rule.require_approval

    if rule is not None and rule.risk_class is not None:
        risk_class = rule.risk_class
    else:
        risk_class = RiskClass.MEDIUM if require_approval else RiskClass.LOW

    display_options = default_display_options()
    if rule is not None and rule.display is not None:
        display_options = rule.display.apply(display_options)

    return PolicyMatch(require_approval, risk_class, display_options)


def policy_from_dict(data: Mapping[str, Any]) -> ApprovalPolicy:
    """
    Build a policy from its JSON-style mapping.

    Args:
        data: Mapping with defaultRequireApproval, allowlist, denylist and tools

    Returns:
        The parsed policy

    Raises:
        PolicyConfigError: If the mapping is malformed
    """
    if not isinstance(data, Mapping):
        raise PolicyConfigError("Approval policy must be a mapping.")

    default_require_approval = data.get("defaultRequireApproval", True)
    if not isinstance(default_require_approval, bool):
        raise PolicyConfigError("defaultRequireApproval must be a boolean.")

    return ApprovalPolicy(
        default_require_approval=default_require_approval,
        allowlist=frozenset(_parse_names(data.get("allowlist"), "allowlist")),
        denylist=frozenset(_parse_names(data.get("denylist"), "denylist")),
        tools=tuple(_parse_rule(item) for item in _parse_list(data.get("tools"), "tools"))
    )


def load_policy_file(path: Union[str, Path]) -> ApprovalPolicy:
    """Load a policy from a JSON file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exception:
        raise PolicyConfigError(f"Approval policy file '{path}' is not valid JSON: {exception}") from exception
    return policy_from_dict(data)


def _parse_list(value: Any, name: str) -> Sequence[Any]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise PolicyConfigError(f"{name} must be a list.")
    return value


def _parse_names(value: Any, name: str) -> Iterable[str]:
    names = _parse_list(value, name)
    for item in names:
        if not isinstance(item, str):
            raise PolicyConfigError(f"{name} entries must be tool names, got {item!r}.")
    return names


def _parse_rule(item: Any) -> ToolRule:
    if not isinstance(item, Mapping):
        raise PolicyConfigError(f"Tool rule must be a mapping, got {item!r}.")

    tool_name = item.get("toolName")
    if not isinstance(tool_name, str) or not tool_name:
        raise PolicyConfigError("Tool rule requires a non-empty toolName.")

    require_approval = item.get("requireApproval")
    if require_approval is not None and not isinstance(require_approval, bool):
        raise PolicyConfigError(f"requireApproval for '{tool_name}' must be a boolean.")

    risk = item.get("risk")
    risk_class = None
    if risk is not None:
        try:
            risk_class = RiskClass(risk)
        except ValueError as exception:
            raise PolicyConfigError(f"Unknown risk class for '{tool_name}': {risk!r}") from exception

    display = item.get("argDisplay")
    return ToolRule(
        tool_name=tool_name,
        require_approval=require_approval,
        risk_class=risk_class,
        display=_parse_display(display, tool_name) if display is not None else None
    )


def _parse_display(data: Any, tool_name: str) -> DisplayOverride:
    if not isinstance(data, Mapping):
        raise PolicyConfigError(f"argDisplay for '{tool_name}' must be a mapping.")

    limits: Dict[str, Optional[int]] = {}
    for key, attribute in (("maxDepth", "max_depth"), ("maxStringLen", "max_string_len"),
                           ("maxArrayLen", "max_array_len"), ("maxObjectKeys", "max_object_keys")):
        value = data.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
            raise PolicyConfigError(f"{key} for '{tool_name}' must be a non-negative integer.")
        limits[attribute] = value

    rules = None
    if data.get("rules") is not None:
        rules = tuple(
            rule for rule in (_parse_redaction_rule(entry, tool_name)
                              for entry in _parse_list(data.get("rules"), "rules"))
            if rule is not None
        )

    return DisplayOverride(rules=rules, **limits)


def _parse_redaction_rule(entry: Any, tool_name: str) -> Optional[RedactionRule]:
    if not isinstance(entry, Mapping):
        raise PolicyConfigError(f"Redaction rule for '{tool_name}' must be a mapping.")
    kind = entry.get("kind", "redactKey")
    if kind != "redactKey":
        # Only key redaction affects display output.
        return None
    key = entry.get("key")
    if not isinstance(key, str) or not key:
        raise PolicyConfigError(f"Redaction rule for '{tool_name}' requires a key.")
    replacement = entry.get("replacement", REDACTED_MARKER)
    if not isinstance(replacement, str):
        raise PolicyConfigError(f"Replacement for key '{key}' must be a string.")
    return RedactionRule(key=key, replacement=replacement)
