"""Tests for the Gemini call layer and the fallback behaviour of ai_service."""

from __future__ import annotations

import base64
import json
from unittest.mock import MagicMock

import pytest

import ai_service
from ai_resilience import AIUnavailable, CircuitBreaker, CostTracker, gemini_image, gemini_text, get_circuit_breaker


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        cb = CircuitBreaker()
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            cb.record_failure("gemini")
        assert cb.is_open("gemini")
        assert cb.get_state("gemini") == "open"

    def test_half_open_after_timeout(self, monkeypatch):
        cb = CircuitBreaker()
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            cb.record_failure("gemini")
        monkeypatch.setattr(cb, "RECOVERY_TIMEOUT", 0)
        assert not cb.is_open("gemini")
        assert cb.get_state("gemini") == "half_open"
        cb.record_success("gemini")
        assert cb.get_state("gemini") == "closed"


class TestCostTracker:
    def test_estimates(self):
        metrics = CostTracker.track_call("gemini-2.5-flash", "a" * 400, "b" * 400, 12)
        assert metrics["total_tokens_est"] == 200
        assert metrics["latency_ms"] == 12


class TestGeminiCalls:
    def test_no_key_is_unavailable(self):
        with pytest.raises(AIUnavailable):
            gemini_text("gemini-2.5-flash", "hi")

    def test_single_attempt_and_failure_counted(self, gemini):
        gemini.generate_content.side_effect = RuntimeError("503 overloaded")
        with pytest.raises(RuntimeError):
            gemini_text("gemini-2.5-flash", "hi")
        assert gemini.generate_content.call_count == 1
        assert get_circuit_breaker()._get_state("gemini").failures == 1

    def test_open_circuit_skips_call(self, gemini):
        gemini.generate_content.side_effect = RuntimeError("down")
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            with pytest.raises(RuntimeError):
                gemini_text("m", "hi")
        with pytest.raises(AIUnavailable):
            gemini_text("m", "hi")
        assert gemini.generate_content.call_count == CircuitBreaker.FAILURE_THRESHOLD

    def test_json_mode_sets_mime_type(self, gemini):
        gemini.generate_content.return_value.text = "{}"
        gemini_text("m", "hi", json_mode=True)
        kwargs = gemini.generate_content.call_args.kwargs
        assert kwargs["generation_config"] == {"response_mime_type": "application/json"}

    def test_image_returns_data_url(self, gemini):
        part = MagicMock()
        part.inline_data.data = b"\x89PNG"
        part.inline_data.mime_type = "image/png"
        candidate = MagicMock()
        candidate.content.parts = [part]
        gemini.generate_content.return_value = MagicMock(candidates=[candidate])
        expected = "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert gemini_image("m", "topic") == expected

    def test_image_without_parts_is_none(self, gemini):
        gemini.generate_content.return_value = MagicMock(candidates=[])
        assert gemini_image("m", "topic") is None


class TestFallbacks:
    def test_feedback_without_key(self):
        assert ai_service.generate_feedback("회고", "성장") == ai_service.NO_KEY_FEEDBACK

    def test_feedback_on_error(self, gemini):
        gemini.generate_content.side_effect = RuntimeError("boom")
        assert ai_service.generate_feedback("회고", "성장") == ai_service.FEEDBACK_ERROR

    def test_feedback_empty_text(self, gemini):
        gemini.generate_content.return_value.text = "  "
        assert ai_service.generate_feedback("회고", "성장") == ai_service.FEEDBACK_EMPTY

    def test_slogan(self, gemini):
        gemini.generate_content.return_value.text = "새벽을 깨우는 힘!\n"
        assert ai_service.generate_challenge_summary(["기상"]) == "새벽을 깨우는 힘!"
        gemini.generate_content.side_effect = RuntimeError("boom")
        assert ai_service.generate_challenge_summary(["기상"]) == ai_service.SLOGAN_ERROR

    def test_summary_fallbacks(self, gemini):
        assert ai_service.summarize_reflection("x") != ai_service.SUMMARY_ERROR
        gemini.generate_content.side_effect = RuntimeError("boom")
        assert ai_service.summarize_reflection("x") == ai_service.SUMMARY_ERROR

    def test_recommend_parses_json(self, gemini):
        gemini.generate_content.return_value.text = json.dumps(
            {"title": "물 2L 마시기", "description": "사진 인증", "days": "21", "emoji": "💧"},
        )
        assert ai_service.recommend_challenge() == {
            "title": "물 2L 마시기", "description": "사진 인증", "days": 21, "emoji": "💧",
        }

    @pytest.mark.parametrize("text", ["not json", "[]", '{"title": ""}', '{"title": "t", "days": "x"}'])
    def test_recommend_bad_payload(self, gemini, text):
        gemini.generate_content.return_value.text = text
        assert ai_service.recommend_challenge() is None

    def test_thumbnail_error_is_none(self, gemini):
        gemini.generate_content.side_effect = RuntimeError("quota")
        assert ai_service.generate_thumbnail("광합성") is None


class TestSettings:
    def _app(self, **overrides):
        from app import create_app
        return create_app({"TESTING": True, "DATABASE": "", "LOCAL_STORE_URL": "memory://",
                           "SECRET_KEY": "test-secret-key", **overrides})

    def test_model_and_key_come_from_app_config(self, monkeypatch):
        app = self._app(GOOGLE_API_KEY="cfg-key", GEMINI_MODEL="gemini-custom")
        model = MagicMock()
        model.generate_content.return_value = MagicMock(text="좋아요")
        seen = {}

        def client(name, key):
            seen.update(name=name, key=key)
            return model

        monkeypatch.setattr("ai_resilience._client", client)
        with app.app_context():
            assert ai_service.generate_feedback("회고", "성장") == "좋아요"
        assert seen == {"name": "gemini-custom", "key": "cfg-key"}

    def test_empty_config_key_disables_calls(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "env-key")
        app = self._app(GOOGLE_API_KEY="")
        with app.app_context():
            assert ai_service.generate_feedback("회고", "성장") == ai_service.NO_KEY_FEEDBACK

    def test_environment_outside_app_context(self, monkeypatch):
        monkeypatch.setenv("GEMINI_MODEL", "gemini-env")
        assert ai_service.text_model() == "gemini-env"
