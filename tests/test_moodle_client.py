#!/usr/bin/env python
"""Tests for moodle client module."""

from unittest.mock import Mock

import pytest
import requests

from moodleterm.moodle.client import (
    MoodleClient,
    MoodleError,
    enrich_assignments_with_course_names,
    extract_moodle_exception,
    normalize_base_url,
    normalize_upcoming_assignments,
)
from moodleterm.moodle.course import Course, UpcomingAssignment


def make_response(payload=None, status=200, text=""):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def make_client(*responses):
    session = Mock()
    session.post.side_effect = list(responses)
    client = MoodleClient("https://moodle.example.edu/", "student", "secret", session=session)
    return client, session


class TestHelpers:
    """Test payload helpers."""

    def test_normalize_base_url(self):
        """Whitespace and trailing slashes are removed."""
        assert normalize_base_url("  https://moodle.example.edu// ") == "https://moodle.example.edu"

    def test_extract_moodle_exception(self):
        """Exception records are turned into one message."""
        payload = {"exception": "moodle_exception", "errorcode": "invalidtoken", "message": "Invalid token"}
        assert (
            extract_moodle_exception(payload)
            == "message=Invalid token | errorcode=invalidtoken | exception=moodle_exception"
        )
        assert extract_moodle_exception({"courses": []}) is None
        assert extract_moodle_exception([1, 2]) is None

    def test_normalize_upcoming_assignments(self):
        """Past and undated assignments are dropped; the rest sorted by due date."""
        payload = {
            "courses": [
                {
                    "id": 1,
                    "shortname": "MATH-101",
                    "fullname": "Calculus I",
                    "assignments": [
                        {"id": 1, "name": "Past", "duedate": 500},
                        {"id": 2, "name": "Undated", "duedate": 0},
                        {"id": 3, "name": "Later", "duedate": 3000},
                        {"id": 4, "name": "Soon", "duedate": 2000},
                        {"id": 5, "duedate": 2500},
                    ],
                }
            ]
        }
        upcoming = normalize_upcoming_assignments(payload, now=1000)
        assert [assignment.name for assignment in upcoming] == ["Soon", "Later"]
        assert upcoming[0].course_short_name == "MATH-101"
        assert normalize_upcoming_assignments(None, now=0) == []

    def test_enrich_assignments(self):
        """Missing course names are filled from the course list."""
        assignments = [UpcomingAssignment(id=1, name="HW", due_date=10, course_id=2)]
        courses = [Course(id=2, shortname="HIST-200", fullname="World History")]
        enriched = enrich_assignments_with_course_names(assignments, courses)
        assert enriched[0].course_full_name == "World History"
        assert enriched[0].course_label == "World History"


class TestMoodleClient:
    """Test the MoodleClient class."""

    def test_client_initialization(self):
        """Endpoints are built from the normalized base URL."""
        client = MoodleClient("https://moodle.example.edu/", "student", "secret", session=Mock())
        assert client.base_url == "https://moodle.example.edu"
        assert client.service == "moodle_mobile_app"
        assert client.token_endpoint == "https://moodle.example.edu/login/token.php"
        assert client.rest_endpoint == "https://moodle.example.edu/webservice/rest/server.php"

    def test_request_token(self):
        """The token endpoint receives the credentials and service."""
        client, session = make_client(make_response({"token": "abc"}))
        assert client.token == "abc"
        url = session.post.call_args.args[0]
        data = session.post.call_args.kwargs["data"]
        assert url == "https://moodle.example.edu/login/token.php"
        assert data == {"username": "student", "password": "secret", "service": "moodle_mobile_app"}

    def test_token_rejected(self):
        """A rejected login raises with Moodle's reason."""
        client, _ = make_client(make_response({"error": "Invalid login", "errorcode": "invalidlogin"}))
        with pytest.raises(MoodleError, match="Invalid login \\| invalidlogin"):
            client.request_token()

    def test_authenticate_and_test_credentials(self):
        """Failures are reported instead of raised."""
        client, _ = make_client(make_response({"error": "Invalid login"}), make_response({"token": "abc"}))
        assert client.test_credentials() == (False, "Invalid login")
        assert client.authenticate()

    def test_call_raises_on_exception_payload(self):
        """Moodle exception records become MoodleError."""
        client, _ = make_client(
            make_response({"token": "abc"}),
            make_response({"exception": "moodle_exception", "errorcode": "invalidtoken", "message": "Invalid token"}),
        )
        with pytest.raises(MoodleError, match="errorcode=invalidtoken"):
            client.call("core_webservice_get_site_info")

    def test_call_sends_token_and_params(self):
        """Calls carry the token, function name and stringified parameters."""
        client, session = make_client(make_response({"token": "abc"}), make_response([]))
        client.call("core_course_get_contents", courseid=5)
        data = session.post.call_args.kwargs["data"]
        assert data == {
            "wstoken": "abc",
            "wsfunction": "core_course_get_contents",
            "moodlewsrestformat": "json",
            "courseid": "5",
        }

    def test_http_error(self):
        """Non-2xx responses raise with the status code."""
        client, _ = make_client(make_response(status=503, text="Service Unavailable"))
        with pytest.raises(MoodleError, match="HTTP 503"):
            client.request_token()

    def test_non_json_body(self):
        """A body that is not JSON raises."""
        client, _ = make_client(make_response(ValueError("not json")))
        with pytest.raises(MoodleError, match="non-JSON"):
            client.request_token()

    def test_transport_failure(self):
        """Connection errors are wrapped."""
        session = Mock()
        session.post.side_effect = requests.ConnectionError("refused")
        client = MoodleClient("https://moodle.example.edu", "student", "secret", session=session)
        with pytest.raises(MoodleError, match="Could not reach Moodle"):
            client.request_token()

    def test_fetch_courses(self):
        """Courses are looked up for the site user and sorted by full name."""
        client, session = make_client(
            make_response({"token": "abc"}),
            make_response({"userid": 3}),
            make_response(
                [
                    {"id": 2, "shortname": "B", "fullname": "beta"},
                    {"id": 1, "shortname": "A", "fullname": "Alpha", "viewurl": "https://m/course/1"},
                    {"id": "x", "shortname": "C"},
                ]
            ),
        )
        courses = client.fetch_courses()
        assert [course.id for course in courses] == [1, 2]
        assert courses[0].courseurl == "https://m/course/1"
        assert session.post.call_args.kwargs["data"]["userid"] == "3"

    def test_fetch_course_contents(self):
        """Sections and their modules are parsed; malformed entries skipped."""
        client, _ = make_client(
            make_response({"token": "abc"}),
            make_response(
                [
                    {
                        "id": 10,
                        "name": "Week 1",
                        "section": 1,
                        "visible": True,
                        "modules": [
                            {"id": 100, "name": "HW", "modname": "assign", "instance": "7"},
                            {"name": "no id"},
                        ],
                    },
                    {"name": "no id"},
                ]
            ),
        )
        sections = client.fetch_course_contents(5)
        assert len(sections) == 1
        assert sections[0].visible == 1
        assert [module.id for module in sections[0].modules] == [100]
        assert sections[0].modules[0].instance == 7

    def test_fetch_course_contents_unexpected_shape(self):
        """A payload that is not a list raises."""
        client, _ = make_client(make_response({"token": "abc"}), make_response({"oops": 1}))
        with pytest.raises(MoodleError):
            client.fetch_course_contents(5)

    def test_fetch_submission_status(self):
        """Submission state and feedback are read from the nested payload."""
        client, _ = make_client(
            make_response({"token": "abc"}),
            make_response(
                {
                    "lastattempt": {
                        "submission": {"status": "submitted"},
                        "gradingstatus": "graded",
                        "graded": True,
                    },
                    "feedback": {
                        "gradefordisplay": "9.00 / 10.00",
                        "plugins": [{"editorfields": [{"text": "<p>Nice work</p>"}]}],
                    },
                }
            ),
        )
        status = client.fetch_submission_status(7)
        assert status.submission_status == "submitted"
        assert status.grading_status == "graded"
        assert status.graded is True
        assert status.grade == "9.00 / 10.00"
        assert status.feedback == "<p>Nice work</p>"
