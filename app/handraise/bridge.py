# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
File-backed prompt bridge between an agent process and a responder process.

The bridge is a single JSON document shared through the filesystem:

    {"version": 1, "prompts": [...], "responses": [...]}

Every state change is a read-modify-write of the whole document inside a
critical section guarded by a lock directory (``<path>.lock``), created
with ``os.mkdir`` and removed on release. Writes go to a temporary file
that is atomically renamed over the document, so readers never see a
partial write. A missing, corrupt or version-mismatched document reads as
the empty state.

At most one prompt may be pending (without a response) at any time.
"""

import asyncio
import json
import logging
import os
import shutil
import time
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar, Union

from .constants import (BRIDGE_VERSION, DEFAULT_POLL_INTERVAL_SECONDS,
                        LOCK_RETRY_SECONDS, LOCK_SUFFIX, LOCK_TIMEOUT_SECONDS,
                        TEMP_SUFFIX, ResponseAction)
from .errors import BridgeLockTimeoutError, PromptCapacityError, ResponseTimeoutError
from .logging_utils import parse_timestamp

# Configure logger
logger = logging.getLogger(__name__)

R = TypeVar('R')

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class BridgePrompt:
    """A question waiting for a responder; ``payload`` holds the question fields."""
    id: str
    created_at: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.payload)
        data["id"] = self.id
        data["createdAt"] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Optional["BridgePrompt"]:
        """Parse a stored prompt; None if the entry is malformed."""
        if not isinstance(data, dict):
            return None
        prompt_id = data.get("id")
        created_at = data.get("createdAt")
        if not isinstance(prompt_id, str) or not isinstance(created_at, str):
            return None
        payload = {key: value for key, value in data.items() if key not in ("id", "createdAt")}
        return cls(id=prompt_id, created_at=created_at, payload=payload)


@dataclass
class BridgeResponse:
    """A responder's answer to one prompt."""
    prompt_id: str
    action: ResponseAction
    responded_at: str
    answer: Optional[Union[str, List[str]]] = None
    selected_options: Optional[List[str]] = None
    custom_response: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "promptId": self.prompt_id,
            "action": self.action.value,
            "respondedAt": self.responded_at,
        }
        if self.answer is not None:
            data["answer"] = self.answer
        if self.selected_options is not None:
            data["selectedOptions"] = self.selected_options
        if self.custom_response is not None:
            data["customResponse"] = self.custom_response
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Optional["BridgeResponse"]:
        """Parse a stored response; None if the entry is malformed."""
        if not isinstance(data, dict):
            return None
        prompt_id = data.get("promptId")
        if not isinstance(prompt_id, str):
            return None
        try:
            action = ResponseAction(data.get("action"))
        except ValueError:
            return None
        return cls(
            prompt_id=prompt_id,
            action=action,
            responded_at=str(data.get("respondedAt", "")),
            answer=data.get("answer"),
            selected_options=data.get("selectedOptions"),
            custom_response=data.get("customResponse")
        )


@dataclass
class BridgeState:
    """In-memory form of the bridge document."""
    prompts: List[BridgePrompt] = field(default_factory=list)
    responses: List[BridgeResponse] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": BRIDGE_VERSION,
            "prompts": [prompt.to_dict() for prompt in self.prompts],
            "responses": [response.to_dict() for response in self.responses],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "BridgeState":
        """Parse a document; anything unusable yields the empty state."""
        if not isinstance(data, dict) or data.get("version") != BRIDGE_VERSION:
            return cls()
        prompts = data.get("prompts") if isinstance(data.get("prompts"), list) else []
        responses = data.get("responses") if isinstance(data.get("responses"), list) else []
        return cls(
            prompts=[p for p in (BridgePrompt.from_dict(item) for item in prompts) if p is not None],
            responses=[r for r in (BridgeResponse.from_dict(item) for item in responses) if r is not None]
        )

    def pending(self) -> List[BridgePrompt]:
        """Prompts that have no response yet, in document order."""
        responded = {response.prompt_id for response in self.responses}
        return [prompt for prompt in self.prompts if prompt.id not in responded]

    def has_prompt(self, prompt_id: str) -> bool:
        return any(prompt.id == prompt_id for prompt in self.prompts)


def _created_at_key(prompt: BridgePrompt) -> datetime:
    return parse_timestamp(prompt.created_at) or _EPOCH


class PromptBridge:
    """
    Cross-process, single-slot mailbox for one question and one answer.

    Args:
        path: Location of the bridge document; the lock directory lives next
              to it with a ``.lock`` suffix
        lock_timeout: Seconds to keep retrying lock acquisition before failing
        lock_retry_interval: Seconds between lock acquisition attempts
    """

    def __init__(
        self,
        path: Union[str, "os.PathLike[str]"],
        lock_timeout: float = LOCK_TIMEOUT_SECONDS,
        lock_retry_interval: float = LOCK_RETRY_SECONDS
    ):
        self.path = os.fspath(path)
        self.lock_path = self.path + LOCK_SUFFIX
        self.lock_timeout = lock_timeout
        self.lock_retry_interval = lock_retry_interval

    def enqueue(self, prompt: BridgePrompt) -> None:
        """
        Publish a prompt.

        Re-enqueueing a prompt that is already stored is a no-op.

        Raises:
            PromptCapacityError: If a different prompt is still pending
            BridgeLockTimeoutError: If the lock cannot be acquired
        """
        def mutate(state: BridgeState) -> None:
            for pending in state.pending():
                if pending.id != prompt.id:
                    raise PromptCapacityError(prompt.id, pending.id)
            if not state.has_prompt(prompt.id):
                state.prompts.append(prompt)
                logger.info("Enqueued prompt (ID: %s).", prompt.id)

        self._transact(mutate)

    def list_pending(self) -> List[BridgePrompt]:
        """Return unanswered prompts, oldest first."""
        pending = self._transact(lambda state: state.pending())
        return sorted(pending, key=_created_at_key)

    def submit_response(self, response: BridgeResponse) -> bool:
        """
        Store a response for a known prompt.

        Returns:
            False, with the state untouched, if no prompt has that ID;
            True otherwise (a previous response for the prompt is replaced)
        """
        def mutate(state: BridgeState) -> bool:
            if not state.has_prompt(response.prompt_id):
                logger.warning("Ignoring response for unknown prompt (ID: %s).", response.prompt_id)
                return False
            for index, existing in enumerate(state.responses):
                if existing.prompt_id == response.prompt_id:
                    state.responses[index] = response
                    break
            else:
                state.responses.append(response)
            logger.info("Stored %s response for prompt (ID: %s).", response.action.value, response.prompt_id)
            return True

        return self._transact(mutate)

    def take_response(self, prompt_id: str) -> Optional[BridgeResponse]:
        """Consume the response for ``prompt_id``, removing it and its prompt; None if not answered yet."""
        taken = self._take_answered(prompt_id)
        return taken[1] if taken is not None else None

    def _take_answered(self, prompt_id: str) -> Optional[Tuple[Optional[BridgePrompt], BridgeResponse]]:
        def mutate(state: BridgeState) -> Optional[Tuple[Optional[BridgePrompt], BridgeResponse]]:
            for index, existing in enumerate(state.responses):
                if existing.prompt_id == prompt_id:
                    del state.responses[index]
                    prompt = next((item for item in state.prompts if item.id == prompt_id), None)
                    state.prompts = [item for item in state.prompts if item.id != prompt_id]
                    return prompt, existing
            return None

        return self._transact(mutate)

    def _restore_answered(self, prompt: Optional[BridgePrompt], response: BridgeResponse) -> None:
        def mutate(state: BridgeState) -> None:
            if prompt is not None and not state.has_prompt(prompt.id):
                state.prompts.append(prompt)
            if not any(existing.prompt_id == response.prompt_id for existing in state.responses):
                state.responses.append(response)
            logger.info("Restored unread response for prompt (ID: %s).", response.prompt_id)

        self._transact(mutate)

    def wait_for_response(
        self,
        prompt_id: str,
        timeout: float,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    ) -> BridgeResponse:
        """
        Block until the response for ``prompt_id`` arrives, then consume it.

        Raises:
            ResponseTimeoutError: If no response arrives in time; the prompt stays pending
        """
        deadline = time.monotonic() + max(timeout, poll_interval)
        while time.monotonic() <= deadline:
            response = self.take_response(prompt_id)
            if response is not None:
                return response
            time.sleep(poll_interval)
        raise ResponseTimeoutError(prompt_id)

    async def wait_for_response_async(
        self,
        prompt_id: str,
        timeout: float,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    ) -> BridgeResponse:
        """
        Coroutine form of :meth:`wait_for_response` that does not block the event loop.

        If the waiter is cancelled while a read is in flight, a response the
        read already consumed is put back so a later waiter can still collect it.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(timeout, poll_interval)
        while loop.time() <= deadline:
            take = asyncio.ensure_future(asyncio.to_thread(self._take_answered, prompt_id))
            try:
                taken = await asyncio.shield(take)
            except asyncio.CancelledError:
                taken = await take
                if taken is not None:
                    await asyncio.to_thread(self._restore_answered, *taken)
                raise
            if taken is not None:
                return taken[1]
            await asyncio.sleep(poll_interval)
        raise ResponseTimeoutError(prompt_id)

    def _transact(self, mutate: Callable[[BridgeState], R]) -> R:
        with self._locked():
            state = self._read_state()
            result = mutate(state)
            self._write_state(state)
            return result

    @contextmanager
    def _locked(self) -> Iterator[None]:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                os.mkdir(self.lock_path)
                break
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise BridgeLockTimeoutError(self.lock_path, self.lock_timeout) from None
                time.sleep(self.lock_retry_interval)

        try:
            yield
        finally:
            shutil.rmtree(self.lock_path, ignore_errors=True)

    def _read_state(self) -> BridgeState:
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return BridgeState()
        except (OSError, ValueError) as exception:
            logger.warning("Resetting unreadable bridge document %s: %s", self.path, exception)
            return BridgeState()
        return BridgeState.from_dict(data)

    def _write_state(self, state: BridgeState) -> None:
        temp_path = self.path + TEMP_SUFFIX
        try:
            with open(temp_path, "w", encoding="utf-8") as handle:
                json.dump(state.to_dict(), handle, indent=2)
            os.replace(temp_path, self.path)
        except Exception:
            with suppress(FileNotFoundError):
                os.remove(temp_path)
            raise
