"""AI call layer: circuit breaker, single-attempt Gemini calls, cost tracking.

Every generative call in the app goes through gemini_text() or gemini_image().
There is no retry: a failed call counts against the circuit breaker and the
exception propagates to ai_service, which turns it into a fallback string.
"""

from __future__ import annotations

import base64
import logging
import os
import threading
import time
from dataclasses import dataclass

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

PROVIDER = "gemini"


class AIUnavailable(RuntimeError):
    """No API key configured, or the circuit breaker is open."""


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ProviderState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-provider state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self) -> None:
        self._providers: dict[str, _ProviderState] = {}
        self._lock = threading.Lock()

    def _get_state(self, provider: str) -> _ProviderState:
        if provider not in self._providers:
            self._providers[provider] = _ProviderState()
        return self._providers[provider]

    def record_success(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures += 1
            state.last_failure_time = time.time()
            if state.failures >= self.FAILURE_THRESHOLD:
                state.state = "open"

    def is_open(self, provider: str) -> bool:
        with self._lock:
            state = self._get_state(provider)
            if state.state == "closed":
                return False
            if state.state == "open":
                if time.time() - state.last_failure_time >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False  # allow one attempt
                return True
            return False

    def get_state(self, provider: str) -> str:
        with self._lock:
            return self._get_state(provider).state

    def reset(self) -> None:
        with self._lock:
            self._providers.clear()


_circuit_breaker = CircuitBreaker()


# ── Cost Tracker ────────────────────────────────────────────

# Approximate pricing per 1M tokens (input + output averaged)
_MODEL_PRICING: dict[str, float] = {
    "gemini-2.0-flash": 0.075,
    "gemini-1.5-flash": 0.075,
    "gemini-2.5-flash": 0.3,
}


class CostTracker:
    """Estimates tokens from character count and applies model-specific pricing."""

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough estimate: 1 token ~ 4 characters."""
        return max(1, len(text) // 4)

    @staticmethod
    def track_call(model: str, input_text: str, output_text: str, latency_ms: int) -> dict:
        input_tokens = CostTracker.estimate_tokens(input_text)
        output_tokens = CostTracker.estimate_tokens(output_text)
        total_tokens = input_tokens + output_tokens
        cost_usd = (total_tokens / 1_000_000) * _MODEL_PRICING.get(model, 1.0)
        return {
            "input_tokens_est": input_tokens,
            "output_tokens_est": output_tokens,
            "total_tokens_est": total_tokens,
            "cost_estimate_usd": round(cost_usd, 6),
            "model": model,
            "latency_ms": latency_ms,
        }


# ── Gemini calls ────────────────────────────────────────────

def setting(name: str, default: str = "") -> str:
    """App config value inside an app context, otherwise the environment."""
    if has_app_context() and name in current_app.config:
        return current_app.config[name] or default
    return os.getenv(name, default)


def api_key() -> str:
    return setting("GOOGLE_API_KEY")


def _client(name: str, key: str):
    import google.generativeai as genai
    genai.configure(api_key=key)
    return genai.GenerativeModel(name)


def _model(name: str):
    key = api_key()
    if not key:
        raise AIUnavailable("GOOGLE_API_KEY is not set")
    if _circuit_breaker.is_open(PROVIDER):
        raise AIUnavailable(f"Circuit breaker open for provider: {PROVIDER}")
    return _client(name, key)


def gemini_text(model: str, prompt: str, json_mode: bool = False) -> str:
    """One generate_content call; returns the response text."""
    m = _model(model)
    kwargs: dict = {}
    if json_mode:
        kwargs["generation_config"] = {"response_mime_type": "application/json"}
    start = time.time()
    try:
        response = m.generate_content(prompt, **kwargs)
        text = response.text
    except Exception:
        _circuit_breaker.record_failure(PROVIDER)
        raise
    _circuit_breaker.record_success(PROVIDER)
    metrics = CostTracker.track_call(model, prompt, text or "", int((time.time() - start) * 1000))
    logger.info("gemini call ok model=%s tokens~%d latency=%dms",
                model, metrics["total_tokens_est"], metrics["latency_ms"])
    return text or ""


def gemini_image(model: str, prompt: str) -> str | None:
    """Generate one image; returns a data URL, or None if no image came back."""
    m = _model(model)
    try:
        response = m.generate_content(prompt)
    except Exception:
        _circuit_breaker.record_failure(PROVIDER)
        raise
    _circuit_breaker.record_success(PROVIDER)
    for candidate in getattr(response, "candidates", None) or []:
        for part in candidate.content.parts:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                data = inline.data
                if isinstance(data, bytes):
                    data = base64.b64encode(data).decode("ascii")
                mime = inline.mime_type or "image/png"
                return f"data:{mime};base64,{data}"
    return None


def get_circuit_breaker() -> CircuitBreaker:
    """Access the module-level circuit breaker singleton."""
    return _circuit_breaker
