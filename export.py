"""CSV exports and the teacher's spreadsheet push."""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime

import requests

from models import Challenge, ChallengeEffort, Course, GrowthEntry, Reflection

logger = logging.getLogger(__name__)

SHEET_URL_KEY = "teacher_sheet_url"


class SheetExportError(RuntimeError):
    pass


def class_growth_csv(growth: list[GrowthEntry], effort: list[ChallengeEffort]) -> str:
    """One row per student: course completions, challenge days, reflection."""
    by_user = {e.user_id: e for e in effort}
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        "Student ID", "Name", "Completed Courses", "Challenges",
        "Challenge Days", "Reflection",
    ])
    for g in growth:
        e = by_user.get(g.user_id)
        writer.writerow([
            g.user_id,
            g.display_name,
            g.course_completion_count,
            e.challenge_count if e else 0,
            e.total_completed_days if e else 0,
            g.reflection_text,
        ])
    return output.getvalue()


def student_report_csv(
    name: str,
    courses: list[Course],
    completed_ids: set[str],
    challenges: list[Challenge],
    reflection: Reflection,
    series: list[dict],
) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Student", name])
    writer.writerow(["Generated", datetime.now().strftime("%Y-%m-%d %H:%M")])
    writer.writerow([])

    writer.writerow(["Section", "Item", "Detail", "Value"])
    for c in courses:
        if c.id in completed_ids:
            writer.writerow(["Course", c.title, c.subject, "completed"])
    for ch in challenges:
        writer.writerow(["Challenge", ch.title, ch.description,
                         f"{ch.days_completed}/{ch.days_total}"])
    for point in series:
        writer.writerow(["Growth", point.get("term", ""), point.get("subject", ""),
                         point.get("score", "")])
    writer.writerow(["Reflection", "", reflection.text, ""])
    if reflection.feedback:
        writer.writerow(["Feedback", "", reflection.feedback, ""])
    return output.getvalue()


def sheet_payload(teacher_name: str, growth: list[GrowthEntry]) -> dict:
    return {
        "timestamp": datetime.now().isoformat(),
        "teacherName": teacher_name,
        "students": [
            {
                "name": g.display_name,
                "courseCount": g.course_completion_count,
                "reflection": g.reflection_text,
            }
            for g in growth
        ],
    }


def push_to_sheet(url: str, payload: dict, timeout: float = 10.0) -> int:
    """POST the growth payload to a spreadsheet web app. Single attempt.

    Returns the HTTP status code; raises SheetExportError on transport
    failure or a non-2xx answer.
    """
    if not url or not url.startswith(("https://", "http://")):
        raise SheetExportError("Sheet URL is not configured")
    try:
        resp = requests.post(url, json=payload, timeout=timeout)
    except requests.RequestException as e:
        logger.error("Sheet export to %s failed: %s", url, e)
        raise SheetExportError(str(e)) from e
    if not resp.ok:
        logger.error("Sheet export rejected: HTTP %s", resp.status_code)
        raise SheetExportError(f"Sheet responded with HTTP {resp.status_code}")
    logger.info("Sheet export sent %d students", len(payload.get("students", [])))
    return resp.status_code
