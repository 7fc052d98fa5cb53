# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Tests for adapters.py module in the handraise package.
"""

import asyncio
import os
import shutil
import tempfile
import unittest
from unittest.mock import Mock, patch

import requests

from handraise import config
from handraise.adapters import (APPROVE_LABEL, AutoApproveAdapter,
                                BridgeApprovalAdapter, HttpApprovalAdapter,
                                create_approval_payload, decision_from_response,
                                format_approval_question, send_approval_request)
from handraise.bridge import BridgeResponse, PromptBridge
from handraise.constants import ResponseAction, RiskClass
from handraise.types import ApprovalRequest, ApproveDecision, DenyDecision


def make_request():
    return ApprovalRequest(
        trace_id="trace-1",
        tool_name="deleteFile",
        summary="Run tool 'deleteFile'",
        risk_class=RiskClass.HIGH,
        display_args={"path": "/tmp/a"},
        created_at="2026-01-01T00:00:00+00:00"
    )


class TestApprovalPayload(unittest.TestCase):
    """Test HTTP approval payload creation."""

    def test_create_approval_payload(self):
        """The payload carries the request fields and a correlation ID."""
        payload = create_approval_payload(make_request())

        self.assertEqual(payload, {
            "traceId": "trace-1",
            "toolName": "deleteFile",
            "summary": "Run tool 'deleteFile'",
            "risk": "high",
            "displayArgs": {"path": "/tmp/a"},
            "createdAt": "2026-01-01T00:00:00+00:00",
            "correlationId": "trace-1"
        })


class TestSendApprovalRequest(unittest.TestCase):
    """Test posting to the approval endpoint."""

    def setUp(self):
        self.payload = create_approval_payload(make_request())

    @patch('requests.post')
    def test_successful_request(self, mock_post):
        """A successful response returns its JSON body."""
        mock_response = Mock()
        mock_response.json.return_value = {"status": "Approved"}
        mock_response.raise_for_status.return_value = None
        mock_post.return_value = mock_response

        success, data = send_approval_request("https://approvals.example.com", self.payload, timeout=5)

        self.assertTrue(success)
        self.assertEqual(data, {"status": "Approved"})
        mock_post.assert_called_once_with("https://approvals.example.com", json=self.payload, timeout=5)

    @patch('requests.post')
    def test_timeout(self, mock_post):
        """A request timeout is reported as failure."""
        mock_post.side_effect = requests.exceptions.Timeout("Request timed out")

        self.assertEqual(send_approval_request("https://approvals.example.com", self.payload), (False, None))

    @patch('requests.post')
    def test_http_error(self, mock_post):
        """An HTTP error status is reported as failure."""
        mock_response = Mock()
        mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("500 Server Error")
        mock_post.return_value = mock_response

        self.assertEqual(send_approval_request("https://approvals.example.com", self.payload), (False, None))

    @patch('requests.post')
    def test_invalid_json(self, mock_post):
        """A body that is not JSON is reported as failure."""
        mock_response = Mock()
        mock_response.raise_for_status.return_value = None
        mock_response.json.side_effect = ValueError("Invalid JSON")
        mock_post.return_value = mock_response

        self.assertEqual(send_approval_request("https://approvals.example.com", self.payload), (False, None))


class TestDecisionFromResponse(unittest.TestCase):
    """Test mapping endpoint responses onto decisions."""

    def test_approved(self):
        self.assertEqual(decision_from_response({"status": "Approved"}), ApproveDecision())

    def test_approved_with_override(self):
        decision = decision_from_response({"status": "Approved", "overrideArgs": {"path": "/safe"}})
        self.assertEqual(decision, ApproveDecision(override_args={"path": "/safe"}))

    def test_rejected(self):
        self.assertEqual(
            decision_from_response({"status": "Rejected", "approver": "alice@example.com"}),
            DenyDecision(reason="rejected by alice@example.com")
        )
        self.assertEqual(
            decision_from_response({"status": "Rejected", "reason": "not today"}),
            DenyDecision(reason="not today")
        )

    def test_unclear_status(self):
        self.assertEqual(
            decision_from_response({"status": "Timeout"}),
            DenyDecision(reason="approval timed out or status unclear: Timeout")
        )

    def test_failed_request(self):
        self.assertEqual(decision_from_response(None), DenyDecision(reason="approval request failed"))


class TestHttpApprovalAdapter(unittest.IsolatedAsyncioTestCase):
    """Test the HTTP approval adapter."""

    @patch('handraise.adapters.send_approval_request')
    async def test_request_approval(self, mock_send):
        """The adapter sends the payload and maps the response."""
        mock_send.return_value = (True, {"status": "Approved"})
        adapter = HttpApprovalAdapter("https://approvals.example.com", timeout=10)

        decision = await adapter.request_approval(make_request())

        self.assertEqual(decision, ApproveDecision())
        url, payload, timeout = mock_send.call_args[0]
        self.assertEqual(url, "https://approvals.example.com")
        self.assertEqual(payload["correlationId"], "trace-1")
        self.assertEqual(timeout, 10)

    @patch('handraise.adapters.send_approval_request')
    async def test_transport_failure_denies(self, mock_send):
        mock_send.return_value = (False, None)
        adapter = HttpApprovalAdapter("https://approvals.example.com")

        decision = await adapter.request_approval(make_request())

        self.assertEqual(decision, DenyDecision(reason="approval request failed"))

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            HttpApprovalAdapter("")

    def test_from_config(self):
        """The configured URL is used; a missing URL is an error."""
        with patch.object(config, "HANDRAISE_APPROVAL_URL", "https://configured.example.com"):
            self.assertIsInstance(HttpApprovalAdapter.from_config(), HttpApprovalAdapter)
        with patch.object(config, "HANDRAISE_APPROVAL_URL", None):
            with self.assertRaises(ValueError) as context:
                HttpApprovalAdapter.from_config()
            self.assertIn("HANDRAISE_APPROVAL_URL", str(context.exception))


class TestAutoApproveAdapter(unittest.IsolatedAsyncioTestCase):
    """Test the auto-approving adapter."""

    async def test_always_approves(self):
        self.assertEqual(await AutoApproveAdapter().request_approval(make_request()), ApproveDecision())


class TestFormatApprovalQuestion(unittest.TestCase):
    """Test rendering approval requests as questions."""

    def test_question_contents(self):
        question = format_approval_question(make_request())

        self.assertEqual(question.header, "Approval required (high risk)")
        self.assertIn("Run tool 'deleteFile'", question.question)
        self.assertIn("trace-1", question.question)
        self.assertIn('"path": "/tmp/a"', question.question)
        self.assertEqual([option.label for option in question.options], ["Approve", "Deny"])
        self.assertTrue(question.custom)


class TestBridgeApprovalAdapter(unittest.IsolatedAsyncioTestCase):
    """Test approval through the prompt bridge."""

    async def asyncSetUp(self):
        self.directory = tempfile.mkdtemp()
        self.bridge = PromptBridge(os.path.join(self.directory, "bridge.json"))
        self.adapter = BridgeApprovalAdapter(self.bridge, timeout=2.0, poll_interval=0.01)

    async def asyncTearDown(self):
        shutil.rmtree(self.directory, ignore_errors=True)

    async def respond(self, action=ResponseAction.ACCEPT, answer=None, custom_response=None):
        while True:
            pending = await asyncio.to_thread(self.bridge.list_pending)
            if pending:
                break
            await asyncio.sleep(0.01)
        await asyncio.to_thread(self.bridge.submit_response, BridgeResponse(
            prompt_id=pending[0].id,
            action=action,
            responded_at="2026-01-01T00:00:05.000Z",
            answer=answer,
            custom_response=custom_response
        ))

    async def decide(self, **response):
        responder = asyncio.ensure_future(self.respond(**response))
        decision = await self.adapter.request_approval(make_request())
        await responder
        return decision

    async def test_approve_answer_approves(self):
        self.assertEqual(await self.decide(answer=APPROVE_LABEL), ApproveDecision())

    async def test_deny_answer_uses_custom_reason(self):
        decision = await self.decide(answer="Deny", custom_response="too risky")
        self.assertEqual(decision, DenyDecision(reason="too risky"))

    async def test_deny_answer_without_reason(self):
        self.assertEqual(await self.decide(answer="Deny"), DenyDecision(reason="denied by responder"))

    async def test_decline_denies(self):
        decision = await self.decide(action=ResponseAction.DECLINE)
        self.assertEqual(decision, DenyDecision(reason="responder chose decline"))

    async def test_timeout_denies(self):
        adapter = BridgeApprovalAdapter(self.bridge, timeout=0.03, poll_interval=0.01)
        decision = await adapter.request_approval(make_request())
        self.assertEqual(decision, DenyDecision(reason="approval timed out"))


if __name__ == '__main__':
    unittest.main()
