# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Tests for bridge.py module in the handraise package.
"""

import asyncio
import json
import os
import shutil
import tempfile
import threading
import time
import unittest

from handraise.bridge import BridgePrompt, BridgeResponse, BridgeState, PromptBridge
from handraise.constants import ResponseAction
from handraise.errors import BridgeLockTimeoutError, PromptCapacityError, ResponseTimeoutError


def make_prompt(prompt_id, created_at="2026-01-01T00:00:01.000Z", question="first"):
    return BridgePrompt(id=prompt_id, created_at=created_at, payload={"question": question})


def make_response(prompt_id, action=ResponseAction.ACCEPT, answer="A"):
    return BridgeResponse(
        prompt_id=prompt_id,
        action=action,
        responded_at="2026-01-01T00:00:05.000Z",
        answer=answer
    )


class BridgeTestCase(unittest.TestCase):
    """Creates a bridge in a temporary directory."""

    def setUp(self):
        self.directory = tempfile.mkdtemp()
        self.path = os.path.join(self.directory, "state", "bridge.json")
        self.bridge = PromptBridge(self.path, lock_timeout=0.2, lock_retry_interval=0.01)

    def tearDown(self):
        shutil.rmtree(self.directory, ignore_errors=True)

    def read_document(self):
        with open(self.path, "r", encoding="utf-8") as handle:
            return json.load(handle)


class TestPromptBridge(BridgeTestCase):
    """Test the prompt bridge state machine."""

    def test_only_one_pending_prompt(self):
        """A second prompt is rejected while the first is unanswered."""
        self.bridge.enqueue(make_prompt("p1"))

        with self.assertRaises(PromptCapacityError) as context:
            self.bridge.enqueue(make_prompt("p2", "2026-01-01T00:00:02.000Z", "second"))

        self.assertEqual(context.exception.pending_id, "p1")
        self.assertIn("Only one pending askUser prompt is allowed", str(context.exception))
        self.assertEqual([prompt.id for prompt in self.bridge.list_pending()], ["p1"])

    def test_enqueue_after_answer_succeeds(self):
        """Once the pending prompt is answered a new prompt may be enqueued."""
        self.bridge.enqueue(make_prompt("p1"))
        self.assertTrue(self.bridge.submit_response(make_response("p1")))

        self.bridge.enqueue(make_prompt("p2", "2026-01-01T00:00:02.000Z"))

        self.assertEqual([prompt.id for prompt in self.bridge.list_pending()], ["p2"])

    def test_reenqueue_same_prompt_is_noop(self):
        """Enqueueing the same prompt twice keeps a single copy."""
        self.bridge.enqueue(make_prompt("p1"))
        self.bridge.enqueue(make_prompt("p1"))

        self.assertEqual(len(self.read_document()["prompts"]), 1)

    def test_submit_response_for_unknown_prompt(self):
        """Responses for unknown prompts are rejected without changing state."""
        self.bridge.enqueue(make_prompt("p1"))
        before = self.read_document()

        self.assertFalse(self.bridge.submit_response(make_response("missing")))

        self.assertEqual(self.read_document(), before)

    def test_submit_response_replaces_previous(self):
        """A second response for the same prompt replaces the first."""
        self.bridge.enqueue(make_prompt("p1"))
        self.bridge.submit_response(make_response("p1", answer="A"))
        self.bridge.submit_response(make_response("p1", answer="B"))

        responses = self.read_document()["responses"]
        self.assertEqual(len(responses), 1)
        self.assertEqual(responses[0]["answer"], "B")

    def test_wait_consumes_response(self):
        """Scenario: answer p1, wait returns it and p1 is no longer pending."""
        self.bridge.enqueue(make_prompt("p1"))
        with self.assertRaises(PromptCapacityError):
            self.bridge.enqueue(make_prompt("p2"))
        self.bridge.submit_response(make_response("p1"))

        response = self.bridge.wait_for_response("p1", timeout=1.0, poll_interval=0.01)

        self.assertEqual(response.action, ResponseAction.ACCEPT)
        self.assertEqual(response.answer, "A")
        self.assertEqual(self.bridge.list_pending(), [])
        self.assertEqual(self.read_document(), {"version": 1, "prompts": [], "responses": []})

    def test_wait_receives_response_from_other_thread(self):
        """A response written concurrently is picked up by polling."""
        self.bridge.enqueue(make_prompt("prompt-1"))
        other = PromptBridge(self.path, lock_timeout=1.0, lock_retry_interval=0.01)

        def respond():
            time.sleep(0.05)
            other.submit_response(make_response("prompt-1"))

        worker = threading.Thread(target=respond)
        worker.start()
        try:
            response = self.bridge.wait_for_response("prompt-1", timeout=2.0, poll_interval=0.01)
        finally:
            worker.join()

        self.assertEqual(response.prompt_id, "prompt-1")

    def test_wait_timeout_keeps_prompt_pending(self):
        """A timed-out wait leaves the prompt collectable later."""
        self.bridge.enqueue(make_prompt("p1"))

        with self.assertRaises(ResponseTimeoutError):
            self.bridge.wait_for_response("p1", timeout=0.05, poll_interval=0.01)

        self.assertEqual([prompt.id for prompt in self.bridge.list_pending()], ["p1"])
        self.bridge.submit_response(make_response("p1"))
        self.assertEqual(self.bridge.wait_for_response("p1", timeout=0.05, poll_interval=0.01).prompt_id, "p1")

    def test_list_pending_sorted_by_creation_time(self):
        """Pending prompts come back oldest first."""
        document = {
            "version": 1,
            "prompts": [
                {"id": "late", "createdAt": "2026-01-01T00:00:03.000Z", "question": "q"},
                {"id": "early", "createdAt": "2026-01-01T00:00:01.000Z", "question": "q"},
                {"id": "answered", "createdAt": "2026-01-01T00:00:00.000Z", "question": "q"}
            ],
            "responses": [{"promptId": "answered", "action": "cancel", "respondedAt": "x"}]
        }
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(document, handle)

        self.assertEqual([prompt.id for prompt in self.bridge.list_pending()], ["early", "late"])

    def test_prompt_payload_round_trips_through_document(self):
        """Question fields are stored flat next to id and createdAt."""
        self.bridge.enqueue(BridgePrompt("p1", "2026-01-01T00:00:01.000Z", {"question": "Pick", "custom": True}))

        self.assertEqual(self.read_document()["prompts"][0], {
            "id": "p1", "createdAt": "2026-01-01T00:00:01.000Z", "question": "Pick", "custom": True
        })
        self.assertEqual(self.bridge.list_pending()[0].payload, {"question": "Pick", "custom": True})


class TestPromptBridgeRecovery(BridgeTestCase):
    """Test self-healing reads and lock handling."""

    def write_raw(self, text):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            handle.write(text)

    def test_missing_document_is_empty(self):
        """A missing document reads as the empty state."""
        self.assertEqual(self.bridge.list_pending(), [])

    def test_corrupt_document_is_reset(self):
        """Unparseable JSON reads as the empty state."""
        self.write_raw("{not json")
        self.assertEqual(self.bridge.list_pending(), [])
        self.bridge.enqueue(make_prompt("p1"))
        self.assertEqual([prompt.id for prompt in self.bridge.list_pending()], ["p1"])

    def test_version_mismatch_is_reset(self):
        """A document from another version reads as the empty state."""
        self.write_raw(json.dumps({"version": 2, "prompts": [{"id": "old", "createdAt": "x"}], "responses": []}))
        self.bridge.enqueue(make_prompt("p1"))
        self.assertEqual([prompt.id for prompt in self.bridge.list_pending()], ["p1"])

    def test_malformed_entries_are_dropped(self):
        """Entries missing required fields are ignored."""
        self.write_raw(json.dumps({
            "version": 1,
            "prompts": ["junk", {"id": "p1", "createdAt": "2026-01-01T00:00:01.000Z"}, {"id": 5}],
            "responses": [{"promptId": "p1", "action": "explode"}]
        }))
        self.assertEqual([prompt.id for prompt in self.bridge.list_pending()], ["p1"])

    def test_lock_timeout(self):
        """A held lock makes operations fail after the lock timeout."""
        os.makedirs(self.bridge.lock_path)

        with self.assertRaises(BridgeLockTimeoutError):
            self.bridge.enqueue(make_prompt("p1"))

        self.assertTrue(os.path.isdir(self.bridge.lock_path))

    def test_lock_released_after_error(self):
        """The lock directory is removed even when an operation fails."""
        self.bridge.enqueue(make_prompt("p1"))
        with self.assertRaises(PromptCapacityError):
            self.bridge.enqueue(make_prompt("p2"))

        self.assertFalse(os.path.exists(self.bridge.lock_path))
        self.assertFalse(os.path.exists(self.path + ".tmp"))

    def test_failed_write_leaves_no_temp_file(self):
        """A document that cannot be serialized is not written and its temp file is removed."""
        self.bridge.enqueue(make_prompt("p1"))
        self.bridge.submit_response(make_response("p1"))
        after_answer = self.read_document()

        with self.assertRaises(TypeError):
            self.bridge.enqueue(BridgePrompt("p2", "2026-01-01T00:00:02.000Z", {"question": "q", "blob": object()}))

        self.assertEqual(self.read_document(), after_answer)
        self.assertFalse(os.path.exists(self.path + ".tmp"))
        self.assertFalse(os.path.exists(self.bridge.lock_path))


class TestBridgeState(unittest.TestCase):
    """Test the in-memory document model."""

    def test_pending_excludes_answered_prompts(self):
        state = BridgeState(prompts=[make_prompt("p1"), make_prompt("p2")], responses=[make_response("p1")])
        self.assertEqual([prompt.id for prompt in state.pending()], ["p2"])

    def test_from_dict_rejects_non_objects(self):
        self.assertEqual(BridgeState.from_dict([1, 2]), BridgeState())


class TestPromptBridgeAsync(unittest.IsolatedAsyncioTestCase):
    """Test the coroutine wait."""

    async def asyncSetUp(self):
        self.directory = tempfile.mkdtemp()
        self.bridge = PromptBridge(os.path.join(self.directory, "bridge.json"))

    async def asyncTearDown(self):
        shutil.rmtree(self.directory, ignore_errors=True)

    async def test_wait_for_response_async(self):
        """The async wait returns a response submitted while it polls."""
        self.bridge.enqueue(make_prompt("p1"))

        async def respond():
            await asyncio.sleep(0.03)
            await asyncio.to_thread(self.bridge.submit_response, make_response("p1"))

        responder = asyncio.ensure_future(respond())
        response = await self.bridge.wait_for_response_async("p1", timeout=1.0, poll_interval=0.01)
        await responder

        self.assertEqual(response.answer, "A")
        self.assertEqual(self.bridge.list_pending(), [])

    async def test_cancelled_wait_keeps_response(self):
        """Cancelling a waiter mid-read puts the consumed response back."""
        bridge = PromptBridge(self.bridge.path, lock_timeout=5.0, lock_retry_interval=0.01)
        bridge.enqueue(make_prompt("p1"))
        bridge.submit_response(make_response("p1"))
        os.mkdir(bridge.lock_path)

        waiter = asyncio.ensure_future(bridge.wait_for_response_async("p1", timeout=5.0, poll_interval=0.01))
        await asyncio.sleep(0.05)
        waiter.cancel()
        await asyncio.sleep(0.02)
        os.rmdir(bridge.lock_path)

        with self.assertRaises(asyncio.CancelledError):
            await waiter

        with open(bridge.path, "r", encoding="utf-8") as handle:
            document = json.load(handle)
        self.assertEqual([response["promptId"] for response in document["responses"]], ["p1"])
        self.assertEqual([prompt["id"] for prompt in document["prompts"]], ["p1"])
        self.assertEqual(bridge.take_response("p1").answer, "A")

    async def test_wait_for_response_async_timeout(self):
        self.bridge.enqueue(make_prompt("p1"))
        with self.assertRaises(ResponseTimeoutError):
            await self.bridge.wait_for_response_async("p1", timeout=0.03, poll_interval=0.01)


if __name__ == '__main__':
    unittest.main()
