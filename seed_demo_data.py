"""
Seed Demo Data: standalone script and Flask CLI command.

Creates a small course catalog, 4 demo students with progress, challenges,
reflections and handwriting entries, and 1 teacher with a class the students
have joined. Goes through the storage facade, so it seeds whichever backend
the app is configured for.

Usage:
    flask --app app seed-demo          # Seed via the CLI
    python seed_demo_data.py           # Same, standalone
"""

from __future__ import annotations

import random

from errors import AlreadyJoined
from learning import build_challenge, build_course
from storage import StorageFacade

DEMO_COURSES = [
    ("demo-c1", "이차함수 그래프 5분 정리", "수학", "https://youtu.be/dQw4w9WgXcQ"),
    ("demo-c2", "광합성과 세포호흡", "과학", ""),
    ("demo-c3", "영어 관계대명사 핵심", "영어", ""),
    ("demo-c4", "조선 후기 사회 변화", "사회", ""),
    ("demo-c5", "문학 작품 감상법", "국어", ""),
]

DEMO_STUDENTS = [
    ("demo-s1", "김하늘"),
    ("demo-s2", "이도윤"),
    ("demo-s3", "박서연"),
    ("demo-s4", "최민준"),
]

DEMO_TEACHER = ("demo-t1", "정선생")

DEMO_CLASS = ("demo-class-000001", "2학년 3반", "수학")

CHALLENGE_TITLES = ["아침 6시 기상", "하루 영단어 30개", "매일 30분 운동", "공부 플래너 쓰기"]

REFLECTIONS = [
    "처음엔 수학이 너무 어려웠는데 매일 강의를 하나씩 보면서 자신감이 생겼어요.",
    "아침 기상 챌린지 덕분에 생활 리듬이 잡혔습니다.",
    "영어 단어 외우기가 습관이 되니 모의고사 점수가 올랐어요.",
    "",
]


def seed(storage: StorageFacade, rng: random.Random | None = None) -> dict:
    """Seed demo data through the facade. Returns a summary dict."""
    rng = rng or random.Random(2026)

    for course_id, title, subject, video in DEMO_COURSES:
        storage.add_course(build_course(title, subject, video, course_id=course_id))

    challenge_count = 0
    for i, (uid, name) in enumerate(DEMO_STUDENTS):
        storage.login_or_create_user(uid, name, "STUDENT")

        for course_id, *_ in rng.sample(DEMO_COURSES, k=rng.randint(1, len(DEMO_COURSES))):
            storage.set_course_completion(uid, course_id, True)

        for j, title in enumerate(rng.sample(CHALLENGE_TITLES, k=2)):
            challenge = build_challenge(title, days_total=rng.choice([14, 21, 30]),
                                        challenge_id=f"{uid}-ch{j}", rng=rng)
            challenge.days_completed = rng.randint(0, challenge.days_total)
            storage.upsert_challenge(uid, challenge)
            challenge_count += 1

        if REFLECTIONS[i]:
            storage.upsert_reflection(uid, REFLECTIONS[i])
        storage.append_handwriting_log(uid, "오늘 걷지 않으면 내일은 뛰어야 한다")

    storage.login_or_create_user(DEMO_TEACHER[0], DEMO_TEACHER[1], "TEACHER")

    class_id, class_name, class_subject = DEMO_CLASS
    demo_class = storage.create_class(DEMO_TEACHER[0], class_name, class_subject, class_id=class_id)
    for uid, _ in DEMO_STUDENTS:
        try:
            storage.join_class(uid, demo_class.code)
        except AlreadyJoined:
            pass

    return {
        "courses_created": len(DEMO_COURSES),
        "students_created": len(DEMO_STUDENTS),
        "challenges_created": challenge_count,
        "teacher_id": DEMO_TEACHER[0],
        "class_code": demo_class.code,
    }


if __name__ == "__main__":
    from app import create_app
    from storage import get_storage

    app = create_app()
    with app.app_context():
        storage = get_storage()
        if storage.mode == "relational":
            import database
            database.ensure_schema()
        result = seed(storage)
        print(f"[Seed] Done: {result}")
