# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Decorator for gating async tool functions.

This module provides a decorator that routes calls to a coroutine function
through an ApprovalGate, so the function only runs once the policy and,
when required, a human approve it.
"""

import functools
import inspect
import logging
from typing import Any, Callable, Dict, Optional, cast

from .gate import ApprovalGate
from .types import F, ToolCall

# Configure logger
logger = logging.getLogger(__name__)


def bind_call_arguments(func: Callable[..., Any], args: Any, kwargs: Any) -> Dict[str, Any]:
    """
    Map positional and keyword arguments onto the function's parameter names.

    Args:
        func: Function being called
        args: Positional arguments
        kwargs: Keyword arguments

    Returns:
        Dictionary of argument values keyed by parameter name; extra
        positional arguments are keyed as argN
    """
    parameters: Dict[str, Any] = {}

    sig = inspect.signature(func)
    param_names = [
        name for name, param in sig.parameters.items()
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]

    # Map positional args to their parameter names
    for i, arg in enumerate(args):
        if i < len(param_names):
            parameters[param_names[i]] = arg
        else:
            parameters[f"arg{i}"] = arg

    parameters.update(kwargs)
    return parameters


def invoke_with_tool_args(func: Callable[..., Any], tool_args: Any) -> Any:
    """
    Call ``func`` with approver-supplied arguments passed as keywords.

    Raises:
        TypeError: If the override arguments are not a mapping
    """
    if not isinstance(tool_args, dict):
        raise TypeError(f"Override arguments for {func.__name__} must be a mapping, got {type(tool_args).__name__}.")
    return func(**tool_args)


def approval_gate(
    gate: ApprovalGate,
    tool_name: Optional[str] = None
) -> Callable[[F], F]:
    """
    Decorator that gates a coroutine function behind an ApprovalGate.

    Args:
        gate: Gate that decides whether and how the call runs
        tool_name: Tool name used for policy matching; defaults to the
                   function name

    Returns:
        Decorated coroutine function raising ApprovalDeniedError on denial
    """
    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"approval_gate requires a coroutine function, got {func!r}.")
        name = tool_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            original_args = bind_call_arguments(func, args, kwargs)

            async def executor(call: ToolCall) -> Any:
                if call.args is original_args:
                    return await func(*args, **kwargs)
                logger.info("Running %s with approver-supplied arguments.", name)
                return await invoke_with_tool_args(func, call.args)

            return await gate.execute_with_approval(ToolCall(name, original_args), executor)

        return cast(F, wrapper)
    return decorator
