"""Tests for voice session helpers."""

import json

import httpx
import pytest

from steward.services.voice import (
    RealtimeSessionClient,
    RealtimeSessionError,
    estimate_voice_cost,
    parse_transcript,
    voice_summary,
)


class TestParseTranscript:
    def test_labels_and_continuations(self):
        transcript = (
            "Operator: how are the tasks\n"
            "doing today?\n"
            "\n"
            "Steward: All green.\n"
            "User: thanks\n"
            "Assistant: Anytime."
        )

        assert parse_transcript(transcript) == [
            {"role": "user", "content": "how are the tasks doing today?"},
            {"role": "assistant", "content": "All green."},
            {"role": "user", "content": "thanks"},
            {"role": "assistant", "content": "Anytime."},
        ]

    def test_unlabelled_preamble_dropped(self):
        assert parse_transcript("static\nUser: hi") == [{"role": "user", "content": "hi"}]

    def test_empty(self):
        assert parse_transcript("") == []


class TestEstimates:
    def test_cost(self):
        tokens, cost = estimate_voice_cost("one two three")
        assert tokens == 4
        assert cost == pytest.approx(4 * 0.00075)

    def test_summary(self):
        assert voice_summary(45, 1) == "Voice 45 second session. 1 tool used."
        assert voice_summary(150, 3) == "Voice 2 minute session. 3 tools used."


class TestRealtimeSessionClient:
    async def test_nested_client_secret(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"client_secret": {"value": "ek_123", "expires_at": 1767225600}}
            )

        client = RealtimeSessionClient(
            api_key="sk-test",
            model="gpt-realtime",
            voice="ash",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await client.create_session() == {"client_secret": "ek_123", "expires_at": 1767225600}
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {"model": "gpt-realtime", "voice": "ash"}

    async def test_error_raises(self):
        client = RealtimeSessionClient(
            api_key="sk-test",
            model="gpt-realtime",
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(401))
            ),
        )

        with pytest.raises(RealtimeSessionError):
            await client.create_session()

    def test_configured(self):
        assert RealtimeSessionClient(api_key=None, model="m").configured is False
        assert RealtimeSessionClient(api_key="k", model="m").configured is True
