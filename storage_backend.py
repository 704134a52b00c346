"""
Interface shared by the relational and local-key-value storage backends.

The facade in storage.py holds exactly one implementation, chosen at startup.
Backends return records in whatever order is natural for them; ordering
rules for catalogs and leaderboards live in the facade.
"""

from __future__ import annotations

from typing import Optional, Protocol

from models import (
    Challenge,
    ChallengeEffort,
    Course,
    GrowthEntry,
    HandwritingLog,
    Reflection,
    SchoolClass,
    User,
)


class StorageBackend(Protocol):
    name: str

    # Users
    def upsert_user(self, user: User) -> User: ...

    # Courses and progress
    def list_courses(self) -> list[Course]: ...
    def add_course(self, course: Course) -> None: ...
    def remove_course(self, course_id: str) -> None: ...
    def list_completed_course_ids(self, user_id: str) -> set[str]: ...
    def set_course_completion(self, user_id: str, course_id: str, completed: bool) -> None: ...

    # Challenges
    def list_challenges(self, user_id: str) -> list[Challenge]: ...
    def upsert_challenge(self, user_id: str, challenge: Challenge) -> None: ...
    def delete_challenge(self, challenge_id: str) -> None: ...

    # Reflections and handwriting
    def get_reflection(self, user_id: str) -> Reflection: ...
    def upsert_reflection(self, user_id: str, reflection: Reflection) -> None: ...
    def list_handwriting_logs(self, user_id: str) -> list[HandwritingLog]: ...
    def append_handwriting_log(self, user_id: str, phrase: str) -> HandwritingLog: ...

    # Teacher aggregates (students only, unordered)
    def challenge_effort(self) -> list[ChallengeEffort]: ...
    def growth(self) -> list[GrowthEntry]: ...

    # Classes and membership
    def add_class(self, school_class: SchoolClass) -> None: ...
    def find_class_by_code(self, code: str) -> Optional[SchoolClass]: ...
    def is_class_member(self, class_id: str, student_id: str) -> bool: ...
    def add_class_member(self, class_id: str, student_id: str, joined_at: str) -> None: ...
    def list_classes_by_teacher(self, teacher_id: str) -> list[SchoolClass]: ...
    def list_classes_for_student(self, student_id: str) -> list[SchoolClass]: ...

    # Shared settings
    def get_config(self, key: str) -> Optional[str]: ...
    def set_config(self, key: str, value: str) -> None: ...
