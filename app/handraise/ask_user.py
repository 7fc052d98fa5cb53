# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Free-form questions to a human.

This module builds the form for an ask-user question, parses accepted
answers, and runs a question through the prompt bridge so an agent can
collect an answer from a separate responder process.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .bridge import BridgePrompt, PromptBridge
from .config import resolve_ask_user_timeout
from .constants import ASK_USER_OPTION_LIMIT, ResponseAction
from .errors import BridgeLockTimeoutError, PromptCapacityError, ResponseTimeoutError
from .logging_utils import get_current_timestamp
from .types import AcceptedAnswer, AskUserOption

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class AskUserInput:
    """A question for the user, optionally with selectable answers."""
    question: str
    header: Optional[str] = None
    options: Optional[List[AskUserOption]] = None
    ready_answers: Optional[List[AskUserOption]] = None
    multiple: Optional[bool] = None
    custom: Optional[bool] = None
    custom_label: Optional[str] = None

    def validate(self) -> None:
        """
        Raises:
            ValueError: If the question is empty or too many options are given
        """
        if sanitize_prompt_text(self.question) is None:
            raise ValueError("question must be a non-empty string.")
        for name, values in (("options", self.options), ("readyAnswers", self.ready_answers)):
            if values is not None and len(values) > ASK_USER_OPTION_LIMIT:
                raise ValueError(f"{name} accepts at most {ASK_USER_OPTION_LIMIT} entries.")

    def to_payload(self) -> Dict[str, Any]:
        """Serialize the question fields for a bridge prompt."""
        payload: Dict[str, Any] = {"question": self.question}
        if self.header is not None:
            payload["header"] = self.header
        if self.options is not None:
            payload["options"] = [option.to_dict() for option in self.options]
        if self.ready_answers is not None:
            payload["readyAnswers"] = [option.to_dict() for option in self.ready_answers]
        if self.multiple is not None:
            payload["multiple"] = self.multiple
        if self.custom is not None:
            payload["custom"] = self.custom
        if self.custom_label is not None:
            payload["customLabel"] = self.custom_label
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AskUserInput":
        """Rebuild a question from a bridge prompt payload."""
        return cls(
            question=str(payload.get("question", "")),
            header=payload.get("header"),
            options=_parse_options(payload.get("options")),
            ready_answers=_parse_options(payload.get("readyAnswers")),
            multiple=payload.get("multiple"),
            custom=payload.get("custom"),
            custom_label=payload.get("customLabel")
        )


@dataclass
class FormRequest:
    """A rendered question and the schema of the expected answer."""
    message: str
    requested_schema: Dict[str, Any]
    option_labels: List[str]
    multiple: bool
    custom: bool


@dataclass
class AskUserResult:
    """Outcome of an ask-user round trip."""
    action: ResponseAction
    message: str
    answer: Optional[Union[str, List[str]]] = None
    selected_options: Optional[List[str]] = None
    custom_response: Optional[str] = None
    state_path: Optional[str] = None
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action.value, "answer": self.answer}
        if self.selected_options is not None:
            data["selectedOptions"] = self.selected_options
        if self.custom_response is not None:
            data["customResponse"] = self.custom_response
        if self.state_path is not None:
            data["statePath"] = self.state_path
        return data


def sanitize_prompt_text(value: Any) -> Optional[str]:
    """Return the stripped text, or None for non-strings and blank strings."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed if trimmed else None


def normalize_option_labels(
    options: Optional[Sequence[AskUserOption]],
    ready_answers: Optional[Sequence[AskUserOption]] = None
) -> List[str]:
    """Collect unique, non-blank labels from options followed by ready answers."""
    seen = set()
    labels: List[str] = []
    for option in list(options or []) + list(ready_answers or []):
        label = sanitize_prompt_text(option.label)
        if label is None or label in seen:
            continue
        seen.add(label)
        labels.append(label)
    return labels


def build_form_request(ask_input: AskUserInput) -> FormRequest:
    """
    Build the message and answer schema for a question.

    Args:
        ask_input: The question to render

    Returns:
        FormRequest whose schema asks for a free-form ``response`` when no
        options exist, or a ``selection`` (plus optional ``customResponse``)
        otherwise
    """
    header = sanitize_prompt_text(ask_input.header)
    question = sanitize_prompt_text(ask_input.question)
    option_labels = normalize_option_labels(ask_input.options, ask_input.ready_answers)
    multiple = bool(ask_input.multiple) if ask_input.multiple is not None else False
    custom = bool(ask_input.custom) if ask_input.custom is not None else True

    message_lines = [line for line in (header, question) if line is not None]
    if option_labels:
        message_lines.append("Options:")
        message_lines.extend(f"- {label}" for label in option_labels)

    properties: Dict[str, Any] = {}
    required: List[str] = []

    if not option_labels:
        properties["response"] = {"type": "string", "title": "Response"}
        required.append("response")
    elif multiple:
        properties["selection"] = {
            "type": "array",
            "title": "Selections",
            "items": {"type": "string", "enum": list(option_labels)},
            "minItems": 0 if custom else 1
        }
        if not custom:
            required.append("selection")
    else:
        properties["selection"] = {
            "type": "string",
            "title": "Selection",
            "enum": list(option_labels)
        }
        if not custom:
            required.append("selection")

    if option_labels and custom:
        properties["customResponse"] = {
            "type": "string",
            "title": sanitize_prompt_text(ask_input.custom_label) or "Custom response"
        }

    return FormRequest(
        message="\n".join(message_lines),
        requested_schema={"type": "object", "properties": properties, "required": required},
        option_labels=option_labels,
        multiple=multiple,
        custom=custom
    )


def parse_accepted_answer(content: Mapping[str, Any], form: FormRequest) -> AcceptedAnswer:
    """
    Extract the answer from accepted form content.

    Selections not among the form's options are dropped. With multiple
    selection the custom text is appended to the answer list; with single
    selection the chosen option wins over the custom text.
    """
    if not form.option_labels:
        response = content.get("response")
        return AcceptedAnswer(answer=response.strip() if isinstance(response, str) else "")

    selected = _normalize_selections(content.get("selection"), set(form.option_labels), form.multiple)
    custom_response = None
    if form.custom and isinstance(content.get("customResponse"), str):
        custom_response = content["customResponse"].strip() or None

    if form.multiple:
        answer: Union[str, List[str]] = (selected + [custom_response]) if custom_response else list(selected)
        return AcceptedAnswer(answer=answer, selected_options=selected, custom_response=custom_response)

    if selected:
        return AcceptedAnswer(answer=selected[0], selected_options=selected, custom_response=custom_response)

    return AcceptedAnswer(answer=custom_response or "", selected_options=selected, custom_response=custom_response)


async def ask_user_via_bridge(
    bridge: PromptBridge,
    ask_input: AskUserInput,
    timeout: Optional[float] = None,
    poll_interval: Optional[float] = None
) -> AskUserResult:
    """
    Ask a question through the prompt bridge and wait for the answer.

    Args:
        bridge: Bridge shared with the responder process
        ask_input: The question to ask
        timeout: Seconds to wait; resolved from configuration when omitted
        poll_interval: Seconds between polls; bridge default when omitted

    Returns:
        AskUserResult; enqueue failures and timeouts come back as ``cancel``
        with an explanatory message
    """
    ask_input.validate()
    wait_timeout = resolve_ask_user_timeout(timeout)
    prompt = BridgePrompt(
        id=str(uuid.uuid4()),
        created_at=get_current_timestamp(),
        payload=ask_input.to_payload()
    )

    try:
        await asyncio.to_thread(bridge.enqueue, prompt)
    except (PromptCapacityError, BridgeLockTimeoutError) as exception:
        logger.warning("Could not enqueue askUser prompt (ID: %s): %s", prompt.id, exception)
        return AskUserResult(action=ResponseAction.CANCEL, message=str(exception), state_path=bridge.path)

    wait_kwargs: Dict[str, Any] = {}
    if poll_interval is not None:
        wait_kwargs["poll_interval"] = poll_interval
    try:
        response = await bridge.wait_for_response_async(prompt.id, wait_timeout, **wait_kwargs)
    except ResponseTimeoutError:
        logger.warning("Timed out waiting for askUser response (ID: %s).", prompt.id)
        return AskUserResult(
            action=ResponseAction.CANCEL,
            message="Timed out waiting for CLI askUser response. Start the responder to answer pending prompts.",
            state_path=bridge.path,
            timed_out=True
        )

    if response.action is not ResponseAction.ACCEPT:
        return AskUserResult(
            action=response.action,
            message=f"User {response.action.value} the askUser prompt via CLI bridge.",
            state_path=bridge.path
        )

    return AskUserResult(
        action=ResponseAction.ACCEPT,
        message="Collected user input via CLI ask bridge.",
        answer=response.answer,
        selected_options=response.selected_options,
        custom_response=response.custom_response,
        state_path=bridge.path
    )


def _parse_options(value: Any) -> Optional[List[AskUserOption]]:
    if not isinstance(value, list):
        return None
    options = []
    for item in value:
        if isinstance(item, dict) and isinstance(item.get("label"), str):
            options.append(AskUserOption(label=item["label"], description=item.get("description")))
    return options


def _normalize_selections(selection: Any, option_set: set, multiple: bool) -> List[str]:
    if multiple:
        if not isinstance(selection, list):
            return []
        return [value for value in selection if isinstance(value, str) and value in option_set]
    if not isinstance(selection, str) or selection not in option_set:
        return []
    return [selection]
