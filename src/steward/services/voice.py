"""Realtime voice session credentials and transcript helpers.

Audio never passes through this service: the browser talks to the realtime
API directly with an ephemeral secret minted here, and calls back into the
tool endpoint when the model invokes a function.
"""

import logging
import math
from typing import Any

import httpx

logger = logging.getLogger(__name__)

USER_LABELS = ("User:", "Operator:")
ASSISTANT_LABELS = ("Assistant:", "Steward:")

# Blended audio + text rate per token
VOICE_COST_PER_TOKEN = 0.00075


class RealtimeSessionError(RuntimeError):
    """Raised when the realtime API refuses to mint a session."""


class RealtimeSessionClient:
    """Mints ephemeral realtime session secrets."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        voice: str = "ash",
        api_url: str = "https://api.openai.com/v1/realtime/sessions",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.voice = voice
        self.api_url = api_url
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def create_session(self) -> dict[str, Any]:
        """Create a realtime session.

        Returns:
            {"client_secret": ..., "expires_at": ...}

        Raises:
            RealtimeSessionError: If the API responds with an error.
        """
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {"model": self.model, "voice": self.voice}
        try:
            if self._client is not None:
                response = await self._client.post(self.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Realtime session creation failed: {e}")
            raise RealtimeSessionError(f"Failed to create realtime session: {e}") from e

        session = response.json()
        secret = session.get("client_secret")
        if isinstance(secret, dict):
            return {"client_secret": secret.get("value"), "expires_at": secret.get("expires_at")}
        return {"client_secret": secret, "expires_at": session.get("expires_at")}


def parse_transcript(transcript: str) -> list[dict[str, str]]:
    """Split a speaker-labelled transcript into chat turns.

    Unlabelled lines continue the previous speaker's turn.
    """
    messages: list[dict[str, str]] = []
    role: str | None = None
    content = ""

    def flush() -> None:
        if role and content.strip():
            messages.append({"role": role, "content": content.strip()})

    for line in transcript.splitlines():
        stripped = line.strip()
        label = next(
            (prefix for prefix in USER_LABELS + ASSISTANT_LABELS if stripped.startswith(prefix)),
            None,
        )
        if label is not None:
            flush()
            role = "user" if label in USER_LABELS else "assistant"
            content = stripped[len(label):].strip()
        elif stripped:
            content += " " + stripped

    flush()
    return messages


def estimate_voice_cost(transcript: str) -> tuple[int, float]:
    """Rough token and USD estimate from the transcript's word count."""
    words = len(transcript.split())
    tokens = math.ceil(words / 0.75)
    return tokens, tokens * VOICE_COST_PER_TOKEN


def voice_summary(duration: int, tools_used: int) -> str:
    if duration > 60:
        length = f"{duration // 60} minute"
    else:
        length = f"{duration} second"
    plural = "" if tools_used == 1 else "s"
    return f"Voice {length} session. {tools_used} tool{plural} used."
