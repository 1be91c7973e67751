"""On-disk cache of Moodle API responses.

The cache is a single JSON file next to the config. It keeps the last
dashboard (courses and upcoming assignments) and the sections of recently
opened courses so the UI has something to show before a live fetch finishes.
Entries older than `CACHE_TTL` are ignored, and only the newest
`MAX_CACHED_COURSE_PAGES` course pages are kept.

Reading never raises: a missing or corrupt file behaves like an empty cache.
Write failures are logged and otherwise ignored.
"""

import json
import time
from pathlib import Path
from typing import Any

from loguru import logger

from moodleterm.config import app_config_dir
from moodleterm.moodle.course import Course, CourseSection, UpcomingAssignment

CACHE_TTL = 60 * 60 * 24 * 21
MAX_CACHED_COURSE_PAGES = 48


def cache_file_path() -> Path:
    return app_config_dir() / "cache.json"


def _now() -> float:
    return time.time()


def _is_expired(timestamp: Any) -> bool:
    if not isinstance(timestamp, (int, float)):
        return True
    return _now() - timestamp > CACHE_TTL


def _read_cache() -> dict:
    path = cache_file_path()
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable cache {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _prune_course_pages(pages: Any) -> dict:
    if not isinstance(pages, dict):
        return {}
    entries = [
        (key, entry)
        for key, entry in pages.items()
        if isinstance(entry, dict) and not _is_expired(entry.get("timestamp"))
    ]
    entries.sort(key=lambda item: item[1]["timestamp"], reverse=True)
    return dict(entries[:MAX_CACHED_COURSE_PAGES])


def _write_cache(cache: dict) -> None:
    cache = dict(cache)
    cache["course_pages"] = _prune_course_pages(cache.get("course_pages"))
    path = cache_file_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cache, f, indent=2)
        path.chmod(0o600)
    except OSError as e:
        logger.warning(f"Could not write cache {path}: {e}")


def get_cached_dashboard() -> tuple[list[Course], list[UpcomingAssignment]] | None:
    """Return the cached (courses, upcoming assignments), or None if absent or expired."""
    entry = _read_cache().get("dashboard")
    if not isinstance(entry, dict) or _is_expired(entry.get("timestamp")):
        return None
    data = entry.get("data") if isinstance(entry.get("data"), dict) else {}
    courses = [
        course
        for course in (Course.from_dict(raw) for raw in data.get("courses") or [] if isinstance(raw, dict))
        if course is not None
    ]
    assignments = [
        assignment
        for assignment in (
            UpcomingAssignment.from_dict(raw)
            for raw in data.get("upcoming_assignments") or []
            if isinstance(raw, dict)
        )
        if assignment is not None
    ]
    return courses, assignments


def get_cached_courses() -> list[Course] | None:
    dashboard = get_cached_dashboard()
    return dashboard[0] if dashboard is not None else None


def save_dashboard(courses: list[Course], upcoming: list[UpcomingAssignment]) -> None:
    cache = _read_cache()
    cache["dashboard"] = {
        "timestamp": _now(),
        "data": {
            "courses": [course.to_dict() for course in courses],
            "upcoming_assignments": [assignment.to_dict() for assignment in upcoming],
        },
    }
    _write_cache(cache)


def save_courses(courses: list[Course]) -> None:
    """Update the cached course list, keeping any cached assignments."""
    dashboard = get_cached_dashboard()
    save_dashboard(courses, dashboard[1] if dashboard is not None else [])


def get_cached_course_sections(course_id: int) -> list[CourseSection] | None:
    """Return the last known sections of a course, or None if absent or expired.

    An expired entry is dropped from the file.
    """
    cache = _read_cache()
    pages = cache.get("course_pages") if isinstance(cache.get("course_pages"), dict) else {}
    entry = pages.get(str(course_id))
    if not isinstance(entry, dict):
        return None
    if _is_expired(entry.get("timestamp")):
        del pages[str(course_id)]
        _write_cache(cache)
        return None
    raw_sections = entry.get("data")
    if not isinstance(raw_sections, list):
        return None
    return [
        section
        for section in (CourseSection.from_dict(raw) for raw in raw_sections if isinstance(raw, dict))
        if section is not None
    ]


def save_course_sections(course_id: int, sections: list[CourseSection]) -> None:
    cache = _read_cache()
    pages = cache.get("course_pages") if isinstance(cache.get("course_pages"), dict) else {}
    pages[str(course_id)] = {
        "timestamp": _now(),
        "data": [section.to_dict() for section in sections],
    }
    cache["course_pages"] = pages
    _write_cache(cache)


def clear_cache() -> None:
    _write_cache({})
    logger.debug("Cache cleared")
