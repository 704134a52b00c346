"""Course and challenge builders plus the student-facing statistics.

Pure functions over models; nothing here touches storage.
"""

from __future__ import annotations

import random
import re
import threading
import time
from typing import Optional

from errors import InvalidInput
from models import Challenge, Course, SchoolClass

CHALLENGE_COLORS = ["bg-pink-500", "bg-purple-500", "bg-indigo-500", "bg-teal-500"]
CHALLENGE_ICONS = ["🎯", "🚀", "💎", "🍀"]
DEFAULT_CHALLENGE_DESCRIPTION = "나만의 멋진 챌린지"
DEFAULT_DURATION = "05:00"

BASELINE_HISTORY = [
    {"term": "입학", "score": 40, "subject": "종합"},
    {"term": "1학기", "score": 55, "subject": "종합"},
    {"term": "여름방학", "score": 62, "subject": "종합"},
]

_YOUTUBE_ID = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


_id_lock = threading.Lock()
_last_id = 0


def _timestamp_id() -> str:
    """Millisecond timestamp, bumped by one when two ids land in the same ms."""
    global _last_id
    with _id_lock:
        _last_id = max(int(time.time() * 1000), _last_id + 1)
        return str(_last_id)


def youtube_id(url: str) -> Optional[str]:
    """11-character video id from any common YouTube link form."""
    match = _YOUTUBE_ID.match(url or "")
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None


def youtube_watch_url(video_url: str) -> str:
    vid = youtube_id(video_url)
    return f"https://www.youtube.com/watch?v={vid}" if vid else video_url


def build_course(title: str, subject: str, video_url: str = "",
                 course_id: str | None = None) -> Course:
    """New catalog entry; YouTube links become embed URL + video thumbnail."""
    if not (title or "").strip():
        raise InvalidInput("course title is required")
    course_id = course_id or _timestamp_id()
    thumbnail = f"https://picsum.photos/400/225?random={course_id}"
    embed_url = ""
    video_url = (video_url or "").strip()
    if video_url:
        vid = youtube_id(video_url)
        if vid:
            thumbnail = f"https://img.youtube.com/vi/{vid}/mqdefault.jpg"
            embed_url = f"https://www.youtube.com/embed/{vid}"
        else:
            embed_url = video_url
    return Course(
        id=course_id,
        title=title.strip(),
        subject=(subject or "").strip(),
        duration=DEFAULT_DURATION,
        thumbnail=thumbnail,
        video_url=embed_url,
    )


def build_challenge(title: str, description: str = "", days_total: int = 30,
                    badge_icon: str = "", challenge_id: str | None = None,
                    rng: random.Random | None = None) -> Challenge:
    if not (title or "").strip():
        raise InvalidInput("challenge title is required")
    try:
        days_total = int(days_total)
    except (TypeError, ValueError):
        raise InvalidInput("days_total must be an integer")
    if days_total < 1:
        raise InvalidInput("days_total must be at least 1")
    rng = rng or random
    return Challenge(
        id=challenge_id or _timestamp_id(),
        title=title.strip(),
        description=(description or "").strip() or DEFAULT_CHALLENGE_DESCRIPTION,
        days_total=days_total,
        days_completed=0,
        badge_icon=badge_icon or rng.choice(CHALLENGE_ICONS),
        color=rng.choice(CHALLENGE_COLORS),
    )


def class_code(subject: str, ident: str) -> str:
    """Join code: first three letters of the subject plus the id's last six digits."""
    return (subject or "").strip()[:3].upper() + str(ident)[-6:]


def build_class(name: str, subject: str, teacher_id: str,
                class_id: str | None = None) -> SchoolClass:
    if not (name or "").strip():
        raise InvalidInput("class name is required")
    if not (subject or "").strip():
        raise InvalidInput("class subject is required")
    if not (teacher_id or "").strip():
        raise InvalidInput("teacher id is required")
    class_id = class_id or _timestamp_id()
    return SchoolClass(
        id=class_id,
        name=name.strip(),
        subject=subject.strip(),
        code=class_code(subject, class_id),
        teacher_id=teacher_id,
    )


def challenge_stats(challenges: list[Challenge]) -> dict:
    """Badges, streak and level shown on the challenge board."""
    total_days = sum(c.days_completed for c in challenges)
    return {
        "badges": sum(1 for c in challenges if c.is_complete),
        "streak": max((max(c.days_completed, 0) for c in challenges), default=0),
        "level": total_days // 5 + 1,
        "total_days": total_days,
    }


def growth_series(completed_courses: int, challenges: list[Challenge]) -> list[dict]:
    # Each course is worth 5 points, each certified day 1; capped at 100.
    current = 62 + 5 * completed_courses + sum(c.days_completed for c in challenges)
    return [dict(p) for p in BASELINE_HISTORY] + [{"term": "현재", "score": min(current, 100), "subject": "종합"}]


def grade_change_summary(series: list[dict]) -> str:
    start, current = series[0]["score"], series[-1]["score"]
    return f"입학 당시 {start}점에서 현재 {current}점으로 성장"
