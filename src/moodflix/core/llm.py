from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from moodflix.core.config import llm_settings

logger = logging.getLogger(__name__)

RECOMMENDATION_COUNT = 5

_FENCE_RE = re.compile(r"^```(?:json)?\s*(?P<body>.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class LlmError(RuntimeError):
    """Raised when the LLM call fails or its reply cannot be used."""

    status_code = 502


class LlmNotConfigured(LlmError):
    status_code = 500


class LlmAuthError(LlmError):
    status_code = 401


class LlmRateLimited(LlmError):
    status_code = 429


class LlmInsufficientCredits(LlmError):
    status_code = 402


@dataclass(frozen=True)
class AiSuggestion:
    title: str
    reason: str | None = None
    genre: str | None = None
    mood_match: str | None = None
    time_suitable: str | None = None


@dataclass(frozen=True)
class AiRecommendations:
    suggestions: list[AiSuggestion]
    overall_analysis: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


def create_movie_prompt(mood: str, time: str, situation: str) -> str:
    return f"""You are an expert movie recommendation AI. Based on the user's preferences, suggest {RECOMMENDATION_COUNT} specific movie titles that would be perfect for their situation.

User Preferences:
- Mood: {mood}
- Time Available: {time}
- Situation: {situation}

Please provide your response in the following JSON format:
{{
  "recommendations": [
    {{
      "title": "Exact Movie Title",
      "reason": "Brief explanation of why this movie fits their mood and situation",
      "genre": "Primary genre",
      "mood_match": "How it matches their mood",
      "time_suitable": "Why it works for their time constraint"
    }}
  ],
  "overall_analysis": "Brief analysis of why these movies are perfect for their current state"
}}

Focus on movies that:
1. Match the user's emotional state ({mood})
2. Can be enjoyed within their time constraint ({time})
3. Are appropriate for their situation ({situation})
4. Are well-known and accessible
5. Have positive reviews and ratings

Return only the JSON response, no additional text."""


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.status_code < 400:
        return

    detail = resp.text[:200]
    if resp.status_code == 401:
        raise LlmAuthError("Authentication failed. Please check your OpenRouter API key")
    if resp.status_code == 402:
        raise LlmInsufficientCredits("Insufficient credits on the OpenRouter account")
    if resp.status_code == 429:
        raise LlmRateLimited("Rate limit exceeded. Please try again later")
    raise LlmError(f"OpenRouter responded with {resp.status_code}: {detail}")


def chat_completion(
    prompt: str,
    *,
    client: httpx.Client | None = None,
    timeout_s: float = 60.0,
    temperature: float = 0.7,
    max_tokens: int = 1000,
) -> str:
    """Send one user message to OpenRouter and return the assistant's text."""

    settings = llm_settings()
    if not settings.api_key:
        raise LlmNotConfigured("Please set OPENROUTER_API_KEY in your environment variables")

    close_client = False
    if client is None:
        client = httpx.Client(timeout=timeout_s)
        close_client = True

    payload = {
        "model": settings.model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
        "max_tokens": max_tokens,
        "top_p": 0.9,
        "frequency_penalty": 0.1,
        "presence_penalty": 0.1,
    }
    headers = {
        "Authorization": f"Bearer {settings.api_key}",
        "HTTP-Referer": settings.site_url,
        "X-Title": settings.site_name,
    }

    logger.info("Sending prompt to OpenRouter model %s (%d chars)", settings.model, len(prompt))
    try:
        resp = client.post(f"{settings.base_url}/chat/completions", json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise LlmError(f"OpenRouter request failed: {e}") from e
    finally:
        if close_client:
            client.close()

    _raise_for_status(resp)

    try:
        body = resp.json()
    except ValueError as e:
        raise LlmError("OpenRouter returned a non-JSON body") from e

    choices = body.get("choices") or []
    content = (choices[0].get("message") or {}).get("content") if choices else None
    if not content or not str(content).strip():
        raise LlmError("The AI returned an empty response")
    return str(content)


def parse_recommendations(text: str) -> AiRecommendations:
    cleaned = text.strip()
    m = _FENCE_RE.match(cleaned)
    if m:
        cleaned = m.group("body")

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse AI response: %s", cleaned[:500])
        raise LlmError("The AI returned an invalid response format") from e

    items = payload.get("recommendations") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise LlmError("AI response does not contain recommendations array")

    suggestions: list[AiSuggestion] = []
    for item in items:
        if not isinstance(item, dict) or not str(item.get("title") or "").strip():
            continue
        suggestions.append(
            AiSuggestion(
                title=str(item["title"]).strip(),
                reason=item.get("reason"),
                genre=item.get("genre"),
                mood_match=item.get("mood_match"),
                time_suitable=item.get("time_suitable"),
            )
        )

    return AiRecommendations(
        suggestions=suggestions,
        overall_analysis=payload.get("overall_analysis"),
        raw=payload,
    )


def ask_for_recommendations(
    mood: str, time: str, situation: str, *, client: httpx.Client | None = None
) -> AiRecommendations:
    return parse_recommendations(chat_completion(create_movie_prompt(mood, time, situation), client=client))


def check_connection(*, client: httpx.Client | None = None) -> str:
    return chat_completion('Say "Hello, API is working!"', client=client, max_tokens=50)
