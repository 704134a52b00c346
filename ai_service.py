"""Gemini-backed helpers for feedback, slogans, recommendations and thumbnails.

None of these raise: a missing key, an open circuit breaker or a provider
error is logged and a fixed Korean fallback is returned instead.
"""

from __future__ import annotations

import json
import logging

from ai_resilience import AIUnavailable, gemini_image, gemini_text, setting

logger = logging.getLogger(__name__)

NO_KEY_FEEDBACK = "AI 서비스 연결 불가: API KEY를 확인해주세요."
FEEDBACK_ERROR = "AI 피드백 생성 중 오류가 발생했습니다."
FEEDBACK_EMPTY = "피드백을 생성할 수 없습니다."
NO_CONNECTION = "AI 연결 불가"
SLOGAN_EMPTY = "챌린지 화이팅!"
SLOGAN_ERROR = "오늘도 화이팅!"
SUMMARY_EMPTY = "요약할 수 없습니다."
SUMMARY_ERROR = "AI 요약 실패"


def text_model() -> str:
    return setting("GEMINI_MODEL", "gemini-2.5-flash")


def image_model() -> str:
    return setting("GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation")


def generate_feedback(reflection: str, grade_change: str) -> str:
    """Warm teacher-style comment (<200 chars) on a student's reflection."""
    prompt = f"""
당신은 따뜻하고 격려를 아끼지 않는 고등학교 선생님입니다.
학생이 다음과 같은 성적 변화와 회고록을 작성했습니다.

성적 변화 추이: {grade_change}
학생의 회고: "{reflection}"

이 학생에게 줄 수 있는 200자 이내의 따뜻한 코멘트와 앞으로의 조언을 작성해주세요.
이모지를 적절히 사용하여 '갓생'을 사는 학생을 응원해주세요.
"""
    try:
        return gemini_text(text_model(), prompt).strip() or FEEDBACK_EMPTY
    except AIUnavailable as e:
        logger.warning("Feedback skipped: %s", e)
        return NO_KEY_FEEDBACK
    except Exception as e:
        logger.error("Feedback generation failed: %s", e)
        return FEEDBACK_ERROR


def generate_challenge_summary(titles: list[str]) -> str:
    """One-line motivational slogan for the challenges a student is running."""
    prompt = f"""
학생이 현재 다음 챌린지들을 수행 중입니다: {', '.join(titles)}.
이 챌린지들을 수행함으로써 얻을 수 있는 긍정적인 변화를 한 문장의 슬로건으로 만들어주세요.
예: "새벽을 깨우는 힘, 당신의 미래를 바꿉니다!"
"""
    try:
        return gemini_text(text_model(), prompt).strip() or SLOGAN_EMPTY
    except AIUnavailable as e:
        logger.warning("Slogan skipped: %s", e)
        return NO_CONNECTION
    except Exception as e:
        logger.error("Slogan generation failed: %s", e)
        return SLOGAN_ERROR


def recommend_challenge() -> dict | None:
    """Suggest one challenge as {title, description, days, emoji}, or None."""
    prompt = """
고등학생이 학교 생활이나 자기개발을 위해 할 수 있는 트렌디하고 유익한 '갓생 챌린지' 하나를 추천해주세요.
너무 뻔하지 않고 학생들이 좋아할만한 주제(공부, 운동, 멘탈, 습관 등)로 선정해주세요.

응답은 반드시 다음 JSON 형식으로 해주세요:
{
  "title": "챌린지 제목 (짧고 임팩트 있게)",
  "description": "구체적인 인증 방법 (한 문장)",
  "days": 추천 수행 기간 (숫자만, 14~30 사이),
  "emoji": "관련 이모지 1개"
}
"""
    try:
        raw = gemini_text(text_model(), prompt, json_mode=True)
    except AIUnavailable as e:
        logger.warning("Recommendation skipped: %s", e)
        return None
    except Exception as e:
        logger.error("Recommendation failed: %s", e)
        return None

    try:
        data = json.loads(raw)
        days = int(data.get("days", 21))
    except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
        logger.warning("Recommendation was not valid JSON: %.80r", raw)
        return None
    title = str(data.get("title", "")).strip()
    if not title:
        return None
    return {
        "title": title,
        "description": str(data.get("description", "")),
        "days": min(max(days, 1), 365),
        "emoji": str(data.get("emoji", "")),
    }


def generate_thumbnail(topic: str) -> str | None:
    """Course thumbnail image for a topic, as a data URL."""
    prompt = (
        "A high-quality, visually appealing, modern, and minimalist educational "
        f'illustration for a course thumbnail about: "{topic}". The style should be '
        "suitable for a high school education platform. Use bright and encouraging "
        "colors. 16:9 aspect ratio."
    )
    try:
        return gemini_image(image_model(), prompt)
    except AIUnavailable as e:
        logger.warning("Thumbnail skipped: %s", e)
        return None
    except Exception as e:
        logger.error("Thumbnail generation failed: %s", e)
        return None


def summarize_reflection(reflection: str) -> str:
    """One-sentence summary of a reflection for the teacher dashboard."""
    prompt = f"""
다음은 학생의 학교생활 성장 회고록입니다.
선생님이 학생의 성장을 한눈에 파악할 수 있도록,
이 학생이 겪은 가장 큰 변화나 성취, 혹은 느낀점을 한 문장으로 명확하고 간결하게 요약해주세요.

학생의 텍스트: "{reflection}"
"""
    try:
        return gemini_text(text_model(), prompt).strip() or SUMMARY_EMPTY
    except AIUnavailable as e:
        logger.warning("Summary skipped: %s", e)
        return NO_CONNECTION
    except Exception as e:
        logger.error("Summary failed: %s", e)
        return SUMMARY_ERROR
