"""Text analysis client for post categorization and solution suggestions.

Talks to the Gemini ``generateContent`` REST endpoint over httpx. Analysis is
an optional enhancement: every public method returns a fallback value instead
of raising when the service is disabled, unreachable or returns garbage.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from civic_stage.core.settings import Settings, settings as default_settings
from civic_stage.schemas.post import PostCategory

logger = logging.getLogger(__name__)

HTTP_OK = 200

FALLBACK_SUGGESTION = "Community discussion is key to solving this."
DEFAULT_SUGGESTION = "Let's work together to solve this."

_ANALYZE_PROMPT = """
Analyze the following text which describes a social or national issue in Bangladesh.
1. Categorize it into one of these: {categories}.
2. Provide a short, 1-sentence constructive suggestion or optimistic viewpoint on how to solve it.

Text: "{text}"
"""

_SOLUTION_PROMPT = """Propose a practical, step-by-step solution (max 3 steps) for this problem in Bangladesh context:
Title: {title}
Description: {body}"""

_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "category": {"type": "STRING"},
        "suggestion": {"type": "STRING"},
    },
    "required": ["category", "suggestion"],
}


class AnalysisError(RuntimeError):
    """Raised internally when the analysis service cannot produce a result."""


class AnalysisDisabledError(AnalysisError):
    """Raised when analysis is requested without an API key configured."""


@dataclass(frozen=True)
class AnalysisConfig:
    """Connection settings for the analysis service."""

    api_key: str | None
    model: str
    base_url: str
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class AnalysisResult:
    category: PostCategory
    suggestion: str


FALLBACK_RESULT = AnalysisResult(category=PostCategory.OTHER, suggestion=FALLBACK_SUGGESTION)


def load_analysis_config(config: Settings | None = None) -> AnalysisConfig:
    """Build the analysis configuration from application settings."""
    config = config or default_settings
    return AnalysisConfig(
        api_key=config.gemini_api_key,
        model=config.gemini_model,
        base_url=config.gemini_base_url.rstrip("/"),
        timeout_seconds=float(config.analysis_timeout_seconds),
    )


def parse_analysis(payload: dict[str, Any]) -> AnalysisResult:
    """Turn the model's JSON answer into a validated result."""
    category = PostCategory.parse(payload.get("category"))
    suggestion = payload.get("suggestion")
    if not isinstance(suggestion, str) or not suggestion.strip():
        suggestion = DEFAULT_SUGGESTION
    return AnalysisResult(category=category, suggestion=suggestion.strip())


class TextAnalyzer:
    """HTTP client wrapper for the text analysis service."""

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_analysis_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def analyze(self, text: str) -> AnalysisResult:
        """Categorize ``text`` and propose a one-sentence suggestion."""
        prompt = _ANALYZE_PROMPT.format(
            categories=", ".join(member.value for member in PostCategory),
            text=text,
        )
        try:
            raw = await self._generate(
                prompt,
                {"responseMimeType": "application/json", "responseSchema": _ANALYSIS_SCHEMA},
            )
            payload = json.loads(raw or "{}")
            if not isinstance(payload, dict):
                raise AnalysisError("Analysis response is not a JSON object")
        except AnalysisDisabledError:
            return FALLBACK_RESULT
        except (AnalysisError, httpx.HTTPError, ValueError) as e:
            logger.warning("Text analysis failed: %s", e)
            return FALLBACK_RESULT
        return parse_analysis(payload)

    async def suggest_solution(self, title: str, body: str) -> str:
        """Return a short step-by-step solution proposal, or ``""`` on failure."""
        try:
            text = await self._generate(_SOLUTION_PROMPT.format(title=title, body=body))
        except AnalysisDisabledError:
            return ""
        except (AnalysisError, httpx.HTTPError, ValueError) as e:
            logger.warning("Solution suggestion failed: %s", e)
            return ""
        return text or "No suggestion available."

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise AnalysisDisabledError("Text analysis is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _generate(self, prompt: str, generation_config: dict[str, Any] | None = None) -> str:
        client = await self._ensure_client()
        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config

        response = await client.post(
            f"/models/{self.config.model}:generateContent",
            json=body,
            headers={"x-goog-api-key": self.config.api_key or ""},
        )
        if response.status_code != HTTP_OK:
            raise AnalysisError(f"Analysis service responded with {response.status_code}")

        payload = response.json()
        try:
            parts = payload["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AnalysisError("Analysis response has no candidates") from exc
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()
