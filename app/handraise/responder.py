# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Line-mode responder for the prompt bridge.

The responder runs in its own process, watches the bridge for pending
prompts and answers them from a line-oriented input stream. ``/decline``
and ``/cancel`` answer with the corresponding action instead of text.
"""

import logging
import time
from typing import Callable, List, Optional

from .ask_user import AskUserInput, normalize_option_labels
from .bridge import BridgePrompt, BridgeResponse, PromptBridge
from .constants import RESPONDER_POLL_INTERVAL_SECONDS, ResponseAction
from .logging_utils import get_current_timestamp

logger = logging.getLogger(__name__)

ReadLine = Callable[[str], str]
WriteLine = Callable[[str], None]


def parse_action_shortcut(value: str) -> Optional[ResponseAction]:
    if value == "/decline":
        return ResponseAction.DECLINE
    if value == "/cancel":
        return ResponseAction.CANCEL
    return None


def parse_option_selection(text: str, options: List[str]) -> List[str]:
    """Turn comma-separated 1-based indexes into option labels, skipping invalid and repeated entries."""
    selected: List[str] = []
    if not text:
        return selected
    for part in text.split(","):
        try:
            index = int(part.strip())
        except ValueError:
            continue
        if index < 1 or index > len(options):
            continue
        label = options[index - 1]
        if label not in selected:
            selected.append(label)
    return selected


def collect_response(prompt: BridgePrompt, read_line: ReadLine, write_line: WriteLine) -> BridgeResponse:
    """
    Show one prompt and read the answer for it.

    Args:
        prompt: The pending prompt
        read_line: Reads one line of input after showing the given prompt text
        write_line: Writes one line of output

    Returns:
        The response to submit for the prompt
    """
    ask_input = AskUserInput.from_payload(prompt.payload)
    write_line("")
    write_line("----------------------------------------")
    write_line(f"Prompt id: {prompt.id}")
    if ask_input.header:
        write_line(ask_input.header)
    write_line(ask_input.question)

    option_labels = normalize_option_labels(ask_input.options, ask_input.ready_answers)
    for index, label in enumerate(option_labels, start=1):
        write_line(f"  {index}. {label}")

    if not option_labels:
        raw = read_line("Response (or /decline, /cancel): ").strip()
        action = parse_action_shortcut(raw)
        if action is not None:
            return BridgeResponse(prompt.id, action, get_current_timestamp())
        return BridgeResponse(prompt.id, ResponseAction.ACCEPT, get_current_timestamp(), answer=raw)

    raw = read_line("Selections (comma numbers, blank for none): ").strip()
    action = parse_action_shortcut(raw)
    if action is not None:
        return BridgeResponse(prompt.id, action, get_current_timestamp())

    selected = parse_option_selection(raw, option_labels)
    if ask_input.multiple:
        answer = list(selected)
    else:
        answer = selected[0] if selected else ""

    custom_response = None
    if ask_input.custom is not False:
        custom_response = read_line("Custom response (blank for none): ").strip() or None
        if custom_response:
            if isinstance(answer, list):
                answer.append(custom_response)
            elif not answer:
                answer = custom_response

    return BridgeResponse(
        prompt.id,
        ResponseAction.ACCEPT,
        get_current_timestamp(),
        answer=answer,
        selected_options=selected,
        custom_response=custom_response
    )


def run_responder(
    bridge: PromptBridge,
    read_line: ReadLine = input,
    write_line: WriteLine = print,
    once: bool = False,
    poll_interval: float = RESPONDER_POLL_INTERVAL_SECONDS
) -> int:
    """
    Answer pending prompts until interrupted.

    Args:
        bridge: Bridge shared with the asking process
        read_line: Input function
        write_line: Output function
        once: Stop after one prompt, or immediately if nothing is pending
        poll_interval: Seconds to sleep when nothing is pending

    Returns:
        Number of responses the bridge accepted
    """
    write_line(f"[handraise ask cli] watching {bridge.path}{' (once mode)' if once else ''}")
    answered = 0
    while True:
        pending = bridge.list_pending()
        if not pending:
            if once:
                return answered
            time.sleep(poll_interval)
            continue

        prompt = pending[0]
        response = collect_response(prompt, read_line, write_line)
        if bridge.submit_response(response):
            answered += 1
        else:
            write_line(f"[handraise ask cli] prompt '{prompt.id}' no longer pending.")

        if once:
            return answered
