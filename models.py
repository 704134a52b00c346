"""
Domain records for the learning tracker.

Plain dataclasses shared by the storage backends, the facade and the routes.
Users, courses and classes are global; challenges, course progress, reflections and
handwriting logs are partitioned by the owning user.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from errors import InvalidInput


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"

    @classmethod
    def parse(cls, value: "UserRole | str") -> "UserRole":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidInput(f"Unknown role: {value!r}")


@dataclass
class User:
    id: str
    name: str
    role: UserRole = UserRole.STUDENT

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "role": self.role.value}

    @staticmethod
    def from_dict(data: dict) -> User:
        return User(
            id=str(data["id"]),
            name=data.get("name", ""),
            role=UserRole.parse(data.get("role", UserRole.STUDENT)),
        )


@dataclass
class Course:
    id: str
    title: str
    subject: str
    duration: str = "05:00"
    thumbnail: str = ""
    video_url: str = ""
    completion_count: int = 0  # derived from course progress, never stored

    def to_dict(self) -> dict:
        return asdict(self)

    def stored_fields(self) -> dict:
        data = asdict(self)
        data.pop("completion_count")
        return data

    @staticmethod
    def from_dict(data: dict) -> Course:
        return Course(
            id=str(data["id"]),
            title=data.get("title", ""),
            subject=data.get("subject", ""),
            duration=data.get("duration", "05:00") or "05:00",
            thumbnail=data.get("thumbnail", "") or "",
            video_url=data.get("video_url", "") or "",
            completion_count=int(data.get("completion_count", 0) or 0),
        )


@dataclass
class Challenge:
    id: str
    title: str
    description: str = ""
    days_total: int = 30
    days_completed: int = 0  # 0 <= days_completed <= days_total
    badge_icon: str = ""
    color: str = ""

    @property
    def is_complete(self) -> bool:
        return self.days_completed >= self.days_total

    def certified(self) -> Challenge:
        """Return a copy advanced by one day, capped at days_total."""
        return replace(self, days_completed=min(self.days_completed + 1, self.days_total))

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> Challenge:
        return Challenge(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description", "") or "",
            days_total=int(data.get("days_total", 30)),
            days_completed=int(data.get("days_completed", 0)),
            badge_icon=data.get("badge_icon", "") or "",
            color=data.get("color", "") or "",
        )


@dataclass
class Reflection:
    text: str = ""
    feedback: Optional[str] = None

    def to_dict(self) -> dict:
        return {"text": self.text, "feedback": self.feedback}


@dataclass
class HandwritingLog:
    id: str
    user_id: str
    phrase: str
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> HandwritingLog:
        return HandwritingLog(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            phrase=data.get("phrase", ""),
            created_at=data.get("created_at", ""),
        )


@dataclass
class ChallengeEffort:
    """One row of the teacher's challenge leaderboard."""
    user_id: str
    display_name: str
    total_completed_days: int = 0
    challenge_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GrowthEntry:
    """One row of the teacher's growth report."""
    user_id: str
    display_name: str
    course_completion_count: int = 0
    reflection_text: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SchoolClass:
    """A teacher's class that students join with a short code."""
    id: str
    name: str
    subject: str
    code: str
    teacher_id: str
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    # Derived at read time, never stored
    student_count: int = 0
    teacher_name: str = ""
    joined_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    def stored_fields(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "subject": self.subject,
            "code": self.code,
            "teacher_id": self.teacher_id,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> SchoolClass:
        return SchoolClass(
            id=str(data["id"]),
            name=data.get("name", ""),
            subject=data.get("subject", ""),
            code=data.get("code", ""),
            teacher_id=str(data.get("teacher_id", "")),
            created_at=data.get("created_at", "") or "",
        )
