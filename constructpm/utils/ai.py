"""
Chat-completion client shared by every AI feature.

`call_ai` routes to OpenAI or Anthropic according to the organisation's
AISettings row, estimates the cost of the call and records it in
AIUsageLog. Provider problems come back as a failed AIResult; nothing here
raises into the caller.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests
from sqlalchemy.orm import Session

from constructpm.core.config import settings
from constructpm.db.models.ai import AISettings, AIUsageLog

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

# USD per million tokens: (input, output). Order matters for prefix lookup.
MODEL_PRICING = {
    "gpt-4o-mini": (0.15, 0.6),
    "gpt-4o": (2.5, 10.0),
    "gpt-4-turbo": (10.0, 30.0),
    "claude-3-haiku-20240307": (0.25, 1.25),
    "claude-3-5-sonnet-20241022": (3.0, 15.0),
    "claude-3-5-haiku-20241022": (0.8, 4.0),
    "claude-3-opus-20240229": (15.0, 75.0),
}
DEFAULT_PRICING_MODEL = "gpt-4o-mini"


@dataclass
class AIUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class AIResult:
    text: Optional[str]
    success: bool
    error: Optional[str] = None
    usage: AIUsage = field(default_factory=AIUsage)
    cost_usd: float = 0.0


def estimate_cost(prompt_tokens: int, completion_tokens: int, model: str) -> float:
    base_model = next((name for name in MODEL_PRICING if model.startswith(name)), DEFAULT_PRICING_MODEL)
    in_price, out_price = MODEL_PRICING[base_model]
    return (prompt_tokens * in_price + completion_tokens * out_price) / 1_000_000


def get_ai_settings(db: Session, organization_id: Optional[int]) -> AISettings:
    """Stored settings for the organisation, or unsaved defaults from config."""
    row = None
    if organization_id is not None:
        row = db.query(AISettings).filter(AISettings.organization_id == organization_id).first()
    if row is None:
        row = AISettings(
            organization_id=organization_id,
            enabled=True,
            provider=settings.AI_DEFAULT_PROVIDER,
            model=settings.AI_DEFAULT_MODEL,
            max_tokens=1024,
        )
    return row


def _failure(error: str) -> AIResult:
    return AIResult(text=None, success=False, error=error)


def _json_body(response: requests.Response, provider: str) -> Optional[dict]:
    """Decoded JSON object of a 2xx reply, or None when the body is not one."""
    try:
        data = response.json()
    except ValueError:
        logger.warning("%s returned a non-JSON body: %s", provider, (response.text or "")[:200])
        return None
    return data if isinstance(data, dict) else None


def _call_openai(messages: List[Dict[str, str]], model: str, max_tokens: int, temperature: float) -> AIResult:
    if not settings.OPENAI_API_KEY:
        return _failure("OPENAI_API_KEY not configured")
    try:
        response = requests.post(
            OPENAI_URL,
            headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}", "Content-Type": "application/json"},
            json={"model": model, "messages": messages, "max_tokens": max_tokens, "temperature": temperature},
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        return _failure(str(e) or "Network error")
    if not response.ok:
        return _failure(f"OpenAI {response.status_code}: {response.text[:200]}")

    data = _json_body(response, "OpenAI")
    if data is None:
        return _failure("OpenAI returned an invalid response")
    usage = data.get("usage") or {}
    prompt_tokens = usage.get("prompt_tokens", 0)
    completion_tokens = usage.get("completion_tokens", 0)
    choices = data.get("choices") or [{}]
    text = (choices[0].get("message") or {}).get("content") or ""
    return AIResult(
        text=text,
        success=True,
        usage=AIUsage(prompt_tokens, completion_tokens),
        cost_usd=estimate_cost(prompt_tokens, completion_tokens, model),
    )


def _call_anthropic(messages: List[Dict[str, str]], model: str, max_tokens: int, temperature: float) -> AIResult:
    if not settings.ANTHROPIC_API_KEY:
        return _failure("ANTHROPIC_API_KEY not configured")

    # Anthropic takes the system prompt separately
    system = next((m["content"] for m in messages if m["role"] == "system"), "")
    conversation = [{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"]
    try:
        response = requests.post(
            ANTHROPIC_URL,
            headers={
                "x-api-key": settings.ANTHROPIC_API_KEY,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            json={
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "system": system,
                "messages": conversation,
            },
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        return _failure(str(e) or "Network error")
    if not response.ok:
        return _failure(f"Anthropic {response.status_code}: {response.text[:200]}")

    data = _json_body(response, "Anthropic")
    if data is None:
        return _failure("Anthropic returned an invalid response")
    usage = data.get("usage") or {}
    prompt_tokens = usage.get("input_tokens", 0)
    completion_tokens = usage.get("output_tokens", 0)
    text = "".join(block.get("text", "") for block in data.get("content") or [] if block.get("type") == "text")
    return AIResult(
        text=text,
        success=True,
        usage=AIUsage(prompt_tokens, completion_tokens),
        cost_usd=estimate_cost(prompt_tokens, completion_tokens, model),
    )


def log_ai_usage(db: Session, organization_id, user_id, feature: str, provider: str, model: str, result: AIResult):
    try:
        db.add(AIUsageLog(
            organization_id=organization_id,
            user_id=user_id,
            feature=feature,
            provider=provider,
            model=model,
            input_tokens=result.usage.prompt_tokens,
            output_tokens=result.usage.completion_tokens,
            cost_usd=result.cost_usd,
            success=result.success,
        ))
        db.commit()
    except Exception:
        logger.exception("Failed to record AI usage for %s", feature)
        db.rollback()


def call_ai(
    db: Session,
    messages: List[Dict[str, str]],
    organization_id: Optional[int] = None,
    user_id: Optional[int] = None,
    feature: str = "general",
    provider: Optional[str] = None,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: float = 0.3,
) -> AIResult:
    config = get_ai_settings(db, organization_id)
    if not config.enabled:
        return _failure("ai_disabled")

    provider = (provider or config.provider or "openai").lower()
    model = model or config.model or settings.AI_DEFAULT_MODEL
    max_tokens = max_tokens or config.max_tokens or 1024

    if provider == "anthropic":
        result = _call_anthropic(messages, model, max_tokens, temperature)
    else:
        result = _call_openai(messages, model, max_tokens, temperature)

    if not result.success:
        logger.warning("AI call for %s failed: %s", feature, result.error)
    if user_id is not None:
        log_ai_usage(db, organization_id, user_id, feature, provider, model, result)
    return result


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_response(text: Optional[str]):
    """Parse a JSON reply, tolerating ```json fences. Raises ValueError."""
    if text is None:
        raise ValueError("empty response")
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    return json.loads(cleaned)


def transcribe_audio(content: bytes, filename: str) -> AIResult:
    """Speech to text through OpenAI's transcription endpoint."""
    if not settings.OPENAI_API_KEY:
        return _failure("OPENAI_API_KEY not configured")
    try:
        response = requests.post(
            "https://api.openai.com/v1/audio/transcriptions",
            headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
            files={"file": (filename, content)},
            data={"model": "whisper-1"},
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        return _failure(str(e) or "Network error")
    if not response.ok:
        return _failure(f"OpenAI {response.status_code}: {response.text[:200]}")
    data = _json_body(response, "OpenAI")
    if data is None:
        return _failure("OpenAI returned an invalid response")
    return AIResult(text=data.get("text", ""), success=True)
