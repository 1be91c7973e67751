"""Module to talk to the Moodle web service REST API."""

from __future__ import annotations

import time
from typing import Any

import requests
from loguru import logger

from moodleterm.clients import LMSClient
from moodleterm.moodle.course import (
    AssignmentDetail,
    Course,
    CourseSection,
    SubmissionStatus,
    UpcomingAssignment,
    as_int,
    as_str,
)

DEFAULT_SERVICE = "moodle_mobile_app"


class MoodleError(RuntimeError):
    """Raised when a Moodle endpoint fails or returns an error payload."""


def normalize_base_url(raw_base_url: str) -> str:
    """Strip surrounding whitespace and trailing slashes from a site URL."""
    return raw_base_url.strip().rstrip("/")


def extract_moodle_exception(payload: Any) -> str | None:
    """Return a readable message if `payload` is a Moodle exception record.

    Moodle signals web service failures with HTTP 200 and a JSON object
    carrying `exception`, `errorcode` and `message` keys.
    """
    if not isinstance(payload, dict):
        return None
    message = as_str(payload.get("message"))
    errorcode = as_str(payload.get("errorcode"))
    exception = as_str(payload.get("exception"))
    debuginfo = as_str(payload.get("debuginfo"))
    if not (message or errorcode or exception):
        return None
    fragments = [
        f"message={message}" if message else "",
        f"errorcode={errorcode}" if errorcode else "",
        f"exception={exception}" if exception else "",
        f"debuginfo={debuginfo}" if debuginfo else "",
    ]
    return " | ".join(fragment for fragment in fragments if fragment)


def normalize_upcoming_assignments(payload: Any, now: int) -> list[UpcomingAssignment]:
    """Flatten a `mod_assign_get_assignments` payload into upcoming assignments.

    Assignments without a positive due date, or due before `now`, are dropped.
    The result is sorted by due date, course name, assignment name and id.
    """
    if not isinstance(payload, dict):
        return []
    upcoming = []
    for raw_course in payload.get("courses") or []:
        if not isinstance(raw_course, dict):
            continue
        course_id = as_int(raw_course.get("id"))
        if course_id is None:
            continue
        short_name = as_str(raw_course.get("shortname"))
        full_name = as_str(raw_course.get("fullname"))
        for raw in raw_course.get("assignments") or []:
            if not isinstance(raw, dict):
                continue
            assignment_id = as_int(raw.get("id"))
            name = as_str(raw.get("name"))
            due_date = as_int(raw.get("duedate"))
            if assignment_id is None or not name or due_date is None or due_date <= 0:
                continue
            if due_date < now:
                continue
            upcoming.append(
                UpcomingAssignment(
                    id=assignment_id,
                    name=name,
                    due_date=due_date,
                    course_id=course_id,
                    course_short_name=short_name,
                    course_full_name=full_name,
                )
            )
    upcoming.sort(
        key=lambda a: (
            a.due_date,
            (a.course_full_name or a.course_short_name or "").casefold(),
            a.name.casefold(),
            a.id,
        )
    )
    return upcoming


def enrich_assignments_with_course_names(
    assignments: list[UpcomingAssignment], courses: list[Course]
) -> list[UpcomingAssignment]:
    """Fill in missing course names on assignments from the course list."""
    by_id = {course.id: course for course in courses}
    enriched = []
    for assignment in assignments:
        course = by_id.get(assignment.course_id)
        if course is None or (assignment.course_short_name and assignment.course_full_name):
            enriched.append(assignment)
            continue
        enriched.append(
            UpcomingAssignment(
                id=assignment.id,
                name=assignment.name,
                due_date=assignment.due_date,
                course_id=assignment.course_id,
                course_short_name=assignment.course_short_name or course.shortname,
                course_full_name=assignment.course_full_name or course.fullname,
            )
        )
    return enriched


class MoodleClient(LMSClient):
    """Client for the Moodle web service API.

    Authentication exchanges a username and password for a web service token
    at `/login/token.php`; every other call is a form POST to
    `/webservice/rest/server.php`. The token is requested lazily and reused
    for the lifetime of the client.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        service: str = DEFAULT_SERVICE,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ):
        """Initializes the MoodleClient."""
        self.base_url = normalize_base_url(base_url)
        self.username = username
        self.password = password
        self.service = service.strip() or DEFAULT_SERVICE
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self._token: str | None = None

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/login/token.php"

    @property
    def rest_endpoint(self) -> str:
        return f"{self.base_url}/webservice/rest/server.php"

    def _post_form(self, url: str, params: dict[str, str]) -> Any:
        """POST form data and decode the JSON body.

        Raises:
            MoodleError: On transport failure, non-2xx status or a non-JSON body.
        """
        try:
            response = self.session.post(url, data=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise MoodleError(f"Could not reach Moodle at {url}: {e}") from e

        if not response.ok:
            detail = response.text.strip() or "no body"
            raise MoodleError(f"HTTP {response.status_code} while calling Moodle endpoint: {detail}")
        try:
            return response.json()
        except ValueError as e:
            raise MoodleError("Moodle endpoint returned non-JSON response") from e

    def request_token(self) -> str:
        """Exchange the username and password for a web service token.

        Raises:
            MoodleError: If Moodle rejects the credentials.
        """
        payload = self._post_form(
            self.token_endpoint,
            {"username": self.username, "password": self.password, "service": self.service},
        )
        record = payload if isinstance(payload, dict) else {}
        token = as_str(record.get("token"))
        if token:
            logger.debug(f"Obtained Moodle token for {self.username} at {self.base_url}")
            return token
        reason = " | ".join(
            value
            for value in (
                as_str(record.get("error")),
                as_str(record.get("errorcode")),
                as_str(record.get("debuginfo")),
            )
            if value
        )
        raise MoodleError(reason or "Token request failed")

    @property
    def token(self) -> str:
        if self._token is None:
            self._token = self.request_token()
        return self._token

    def authenticate(self) -> bool:
        """Request a fresh token and report whether it succeeded."""
        self._token = None
        try:
            self._token = self.request_token()
        except MoodleError as e:
            logger.warning(f"Moodle authentication failed: {e}")
            return False
        return True

    def test_credentials(self) -> tuple[bool, str]:
        """Check the credentials without raising.

        Returns:
            (True, "") on success, otherwise (False, reason).
        """
        try:
            self._token = self.request_token()
        except MoodleError as e:
            return False, str(e)
        return True, ""

    def call(self, wsfunction: str, **params: Any) -> Any:
        """Invoke a web service function and return its decoded JSON payload.

        Raises:
            MoodleError: If the transport fails or Moodle returns an exception record.
        """
        form = {"wstoken": self.token, "wsfunction": wsfunction, "moodlewsrestformat": "json"}
        form.update({key: str(value) for key, value in params.items()})
        logger.debug(f"Calling {wsfunction} with {sorted(params)}")
        payload = self._post_form(self.rest_endpoint, form)
        exception = extract_moodle_exception(payload)
        if exception:
            raise MoodleError(exception)
        return payload

    def fetch_site_user_id(self) -> int:
        info = self.call("core_webservice_get_site_info")
        user_id = as_int(info.get("userid")) if isinstance(info, dict) else None
        if user_id is None:
            raise MoodleError("Could not resolve current user id from Moodle site info")
        return user_id

    def fetch_courses(self) -> list[Course]:
        """Return the enrolled courses of the current user, sorted by full name."""
        user_id = self.fetch_site_user_id()
        raw_courses = self.call("core_enrol_get_users_courses", userid=user_id)
        if not isinstance(raw_courses, list):
            raise MoodleError("Unexpected Moodle response for enrolled courses")
        courses = [
            course
            for course in (Course.from_dict(entry) for entry in raw_courses if isinstance(entry, dict))
            if course is not None
        ]
        courses.sort(key=lambda course: course.fullname.casefold())
        logger.debug(f"Fetched {len(courses)} courses")
        return courses

    def fetch_course_contents(self, course_id: int) -> list[CourseSection]:
        """Return the sections of a course in display order."""
        raw_sections = self.call("core_course_get_contents", courseid=course_id)
        if not isinstance(raw_sections, list):
            raise MoodleError("Unexpected Moodle response for course contents")
        sections = [
            section
            for section in (
                CourseSection.from_dict(entry) for entry in raw_sections if isinstance(entry, dict)
            )
            if section is not None
        ]
        logger.debug(f"Fetched {len(sections)} sections for course {course_id}")
        return sections

    def fetch_upcoming_assignments(self, now: int | None = None) -> list[UpcomingAssignment]:
        """Return assignments across all courses that are due at or after `now`."""
        if now is None:
            now = int(time.time())
        payload = self.call("mod_assign_get_assignments")
        return normalize_upcoming_assignments(payload, now)

    def fetch_course_assignments(self, course_id: int) -> list[AssignmentDetail]:
        """Return the full assignment records of one course."""
        payload = self.call("mod_assign_get_assignments", **{"courseids[0]": course_id})
        details = []
        for raw_course in (payload.get("courses") or []) if isinstance(payload, dict) else []:
            if not isinstance(raw_course, dict):
                continue
            for raw in raw_course.get("assignments") or []:
                if not isinstance(raw, dict):
                    continue
                detail = AssignmentDetail.from_dict(raw, course_id=as_int(raw_course.get("id")))
                if detail is not None:
                    details.append(detail)
        return details

    def fetch_submission_status(self, assignment_id: int) -> SubmissionStatus:
        """Return the current user's submission status for an assignment."""
        payload = self.call("mod_assign_get_submission_status", assignid=assignment_id)
        return SubmissionStatus.from_dict(payload if isinstance(payload, dict) else {})


# Convenience module-level functions for CLI and simple scripting
def check_credentials(
    base_url: str, username: str, password: str, service: str = DEFAULT_SERVICE
) -> tuple[bool, str]:
    """Check a set of credentials against a Moodle site.

    Returns:
        (ok, message) where message is empty on success.
    """
    client = MoodleClient(base_url=base_url, username=username, password=password, service=service)
    return client.test_credentials()


def fetch_courses(
    base_url: str, username: str, password: str, service: str = DEFAULT_SERVICE
) -> list[Course]:
    """Fetch the enrolled courses for a user."""
    client = MoodleClient(base_url=base_url, username=username, password=password, service=service)
    return client.fetch_courses()


def fetch_course_contents(
    course_id: int, base_url: str, username: str, password: str, service: str = DEFAULT_SERVICE
) -> list[CourseSection]:
    """Fetch the sections of one course."""
    client = MoodleClient(base_url=base_url, username=username, password=password, service=service)
    return client.fetch_course_contents(course_id)
