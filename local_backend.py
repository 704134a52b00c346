"""
Key-value storage backend: used when no remote database is configured.

Every record lives under a namespaced key:

    {prefix}all_users                 list of known user ids (the user index)
    {prefix}courses                   shared course catalog
    {prefix}user_{id}                 User
    {prefix}progress_{id}             list of completed course ids
    {prefix}challenges_{id}           list of Challenge
    {prefix}owner_{challenge id}      owning user id (reverse index)
    {prefix}reflection_{id}           Reflection
    {prefix}handwriting_{id}          list of HandwritingLog, newest first
    {prefix}config_{key}              shared setting
    {prefix}class_{id}                SchoolClass
    {prefix}classcode_{code}          class id for a join code
    {prefix}teacherclasses_{id}       ids of the classes a teacher created
    {prefix}classroster_{class id}    student ids in a class
    {prefix}classmembers_{id}         a student's memberships with join time

Ids are percent-encoded and entity names never contain "_", so two different
(entity, id) pairs can never produce the same key. Aggregates walk the user
index instead of introspecting key names.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from errors import BackendRejected
from kv_store import KeyValueStore
from models import (
    Challenge,
    ChallengeEffort,
    Course,
    GrowthEntry,
    HandwritingLog,
    Reflection,
    SchoolClass,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "school2026_"


class LocalBackend:
    """StorageBackend over a flat KeyValueStore."""

    name = "local"

    def __init__(self, store: KeyValueStore, prefix: str = DEFAULT_PREFIX):
        self.store = store
        self.prefix = prefix

    # ── Key construction ────────────────────────────────────

    def key(self, entity: str, ident: str) -> str:
        return f"{self.prefix}{entity}_{quote(str(ident), safe='')}"

    @property
    def users_index_key(self) -> str:
        return f"{self.prefix}all_users"

    @property
    def courses_key(self) -> str:
        return f"{self.prefix}courses"

    def _list(self, key: str) -> list:
        value = self.store.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise BackendRejected(f"{key} holds {type(value).__name__}, expected a list", "read")
        return value

    def _known_users(self) -> list[str]:
        return [str(uid) for uid in self._list(self.users_index_key)]

    def _remember_user(self, user_id: str) -> None:
        known = self._known_users()
        if user_id not in known:
            known.append(user_id)
            self.store.set(self.users_index_key, known)

    # ── Users ───────────────────────────────────────────────

    def upsert_user(self, user: User) -> User:
        self.store.set(self.key("user", user.id), user.to_dict())
        self._remember_user(user.id)
        return user

    def _get_user(self, user_id: str) -> Optional[User]:
        data = self.store.get(self.key("user", user_id))
        return User.from_dict(data) if data else None

    # ── Courses ─────────────────────────────────────────────

    def _catalog(self) -> list[Course]:
        return [Course.from_dict(c) for c in self._list(self.courses_key)]

    def list_courses(self) -> list[Course]:
        counts: dict[str, int] = {}
        for uid in self._known_users():
            for course_id in set(self._list(self.key("progress", uid))):
                counts[course_id] = counts.get(course_id, 0) + 1
        courses = self._catalog()
        for course in courses:
            course.completion_count = counts.get(course.id, 0)
        return courses

    def add_course(self, course: Course) -> None:
        others = [c for c in self._catalog() if c.id != course.id]
        self.store.set(self.courses_key, [course.stored_fields()] + [c.stored_fields() for c in others])

    def remove_course(self, course_id: str) -> None:
        catalog = self._catalog()
        kept = [c for c in catalog if c.id != course_id]
        if len(kept) != len(catalog):
            self.store.set(self.courses_key, [c.stored_fields() for c in kept])
        for uid in self._known_users():
            progress_key = self.key("progress", uid)
            done = self._list(progress_key)
            if course_id in done:
                self.store.set(progress_key, [cid for cid in done if cid != course_id])

    def list_completed_course_ids(self, user_id: str) -> set[str]:
        return {str(cid) for cid in self._list(self.key("progress", user_id))}

    def set_course_completion(self, user_id: str, course_id: str, completed: bool) -> None:
        progress_key = self.key("progress", user_id)
        done = self._list(progress_key)
        if completed and course_id not in done:
            self.store.set(progress_key, done + [course_id])
            self._remember_user(user_id)
        elif not completed and course_id in done:
            self.store.set(progress_key, [cid for cid in done if cid != course_id])

    # ── Challenges ──────────────────────────────────────────

    def list_challenges(self, user_id: str) -> list[Challenge]:
        return [Challenge.from_dict(c) for c in self._list(self.key("challenges", user_id))]

    def _save_challenges(self, user_id: str, challenges: list[Challenge]) -> None:
        self.store.set(self.key("challenges", user_id), [c.to_dict() for c in challenges])

    def upsert_challenge(self, user_id: str, challenge: Challenge) -> None:
        owner_key = self.key("owner", challenge.id)
        previous_owner = self.store.get(owner_key)
        if previous_owner is not None and previous_owner != user_id:
            moved = [c for c in self.list_challenges(previous_owner) if c.id != challenge.id]
            self._save_challenges(previous_owner, moved)

        challenges = self.list_challenges(user_id)
        for i, existing in enumerate(challenges):
            if existing.id == challenge.id:
                challenges[i] = challenge
                break
        else:
            challenges.append(challenge)
        self._save_challenges(user_id, challenges)
        self.store.set(owner_key, user_id)
        self._remember_user(user_id)

    def _find_owner(self, challenge_id: str) -> Optional[str]:
        owner = self.store.get(self.key("owner", challenge_id))
        if owner is not None:
            return str(owner)
        # Records written before the reverse index existed
        for uid in self._known_users():
            if any(c.id == challenge_id for c in self.list_challenges(uid)):
                return uid
        return None

    def delete_challenge(self, challenge_id: str) -> None:
        owner = self._find_owner(challenge_id)
        if owner is None:
            logger.debug("delete_challenge: %s has no owner, nothing to do", challenge_id)
            return
        remaining = [c for c in self.list_challenges(owner) if c.id != challenge_id]
        self._save_challenges(owner, remaining)
        self.store.delete(self.key("owner", challenge_id))

    # ── Reflections ─────────────────────────────────────────

    def get_reflection(self, user_id: str) -> Reflection:
        data = self.store.get(self.key("reflection", user_id))
        if not data:
            return Reflection()
        return Reflection(text=data.get("text", ""), feedback=data.get("feedback"))

    def upsert_reflection(self, user_id: str, reflection: Reflection) -> None:
        self.store.set(self.key("reflection", user_id), reflection.to_dict())
        self._remember_user(user_id)

    # ── Handwriting ─────────────────────────────────────────

    def list_handwriting_logs(self, user_id: str) -> list[HandwritingLog]:
        return [HandwritingLog.from_dict(e) for e in self._list(self.key("handwriting", user_id))]

    def append_handwriting_log(self, user_id: str, phrase: str) -> HandwritingLog:
        entry = HandwritingLog(
            id=uuid.uuid4().hex[:12],
            user_id=user_id,
            phrase=phrase,
            created_at=datetime.now().isoformat(),
        )
        log_key = self.key("handwriting", user_id)
        self.store.set(log_key, [entry.to_dict()] + self._list(log_key))
        self._remember_user(user_id)
        return entry

    # ── Aggregates ──────────────────────────────────────────

    def _students(self) -> list[User]:
        students = []
        for uid in self._known_users():
            user = self._get_user(uid)
            if user is not None and user.role == UserRole.STUDENT:
                students.append(user)
        return students

    def challenge_effort(self) -> list[ChallengeEffort]:
        rows = []
        for user in self._students():
            challenges = self.list_challenges(user.id)
            rows.append(ChallengeEffort(
                user_id=user.id,
                display_name=user.name,
                total_completed_days=sum(c.days_completed for c in challenges),
                challenge_count=len(challenges),
            ))
        return rows

    def growth(self) -> list[GrowthEntry]:
        return [
            GrowthEntry(
                user_id=user.id,
                display_name=user.name,
                course_completion_count=len(self.list_completed_course_ids(user.id)),
                reflection_text=self.get_reflection(user.id).text,
            )
            for user in self._students()
        ]

    # ── Classes ─────────────────────────────────────────────

    def _get_class(self, class_id: str) -> Optional[SchoolClass]:
        data = self.store.get(self.key("class", class_id))
        return SchoolClass.from_dict(data) if data else None

    def _roster(self, class_id: str) -> list[str]:
        return [str(uid) for uid in self._list(self.key("classroster", class_id))]

    def add_class(self, school_class: SchoolClass) -> None:
        previous = self._get_class(school_class.id)
        if previous is not None and previous.code != school_class.code:
            self.store.delete(self.key("classcode", previous.code))
        if previous is not None and previous.teacher_id != school_class.teacher_id:
            old_key = self.key("teacherclasses", previous.teacher_id)
            self.store.set(old_key, [cid for cid in self._list(old_key) if cid != school_class.id])

        self.store.set(self.key("class", school_class.id), school_class.stored_fields())
        self.store.set(self.key("classcode", school_class.code), school_class.id)
        teacher_key = self.key("teacherclasses", school_class.teacher_id)
        owned = self._list(teacher_key)
        if school_class.id not in owned:
            self.store.set(teacher_key, owned + [school_class.id])

    def find_class_by_code(self, code: str) -> Optional[SchoolClass]:
        class_id = self.store.get(self.key("classcode", code))
        return None if class_id is None else self._get_class(str(class_id))

    def is_class_member(self, class_id: str, student_id: str) -> bool:
        return student_id in self._roster(class_id)

    def add_class_member(self, class_id: str, student_id: str, joined_at: str) -> None:
        roster = self._roster(class_id)
        if student_id not in roster:
            self.store.set(self.key("classroster", class_id), roster + [student_id])
        member_key = self.key("classmembers", student_id)
        memberships = [m for m in self._list(member_key) if m.get("class_id") != class_id]
        self.store.set(member_key, memberships + [{"class_id": class_id, "joined_at": joined_at}])
        self._remember_user(student_id)

    def list_classes_by_teacher(self, teacher_id: str) -> list[SchoolClass]:
        classes = []
        for class_id in self._list(self.key("teacherclasses", teacher_id)):
            school_class = self._get_class(str(class_id))
            if school_class is None:
                continue
            school_class.student_count = len(self._roster(school_class.id))
            classes.append(school_class)
        return classes

    def list_classes_for_student(self, student_id: str) -> list[SchoolClass]:
        classes = []
        for membership in self._list(self.key("classmembers", student_id)):
            school_class = self._get_class(str(membership.get("class_id", "")))
            if school_class is None:
                continue
            teacher = self._get_user(school_class.teacher_id)
            school_class.teacher_name = teacher.name if teacher else ""
            school_class.joined_at = membership.get("joined_at", "")
            school_class.student_count = len(self._roster(school_class.id))
            classes.append(school_class)
        return classes

    # ── Shared settings ─────────────────────────────────────

    def get_config(self, key: str) -> Optional[str]:
        value = self.store.get(self.key("config", key))
        return None if value is None else str(value)

    def set_config(self, key: str, value: str) -> None:
        self.store.set(self.key("config", key), value)
