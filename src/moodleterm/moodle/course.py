"""Dataclasses for the records returned by the Moodle web service API.

The client normalizes raw JSON payloads into these snapshots. They are never
mutated after construction; the navigation code only reads them.
"""

import math
from dataclasses import dataclass, field
from typing import Any


def as_int(value: Any) -> int | None:
    """Coerce a JSON value into an int, accepting numeric strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return None
        return int(parsed) if math.isfinite(parsed) else None
    return None


def as_float(value: Any) -> float | None:
    """Coerce a JSON value into a float, accepting numeric strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def as_visible(value: Any) -> int | None:
    # Moodle reports visibility as 0/1 or as a boolean depending on the function
    if isinstance(value, bool):
        return 1 if value else 0
    return as_int(value)


@dataclass
class Course:
    """Represents a Moodle course the user is enrolled in.

    Attributes:
        id: The Moodle course ID
        shortname: The short course code (e.g., "MATH-UA 122")
        fullname: The full course name
        displayname: Name as shown by the Moodle theme, if different
        categoryid: ID of the course category
        categoryname: Name of the course category
        summary: Course summary (HTML)
        visible: 1 if the course is visible to students
        progress: Completion percentage, or None if tracking is disabled
        courseurl: Link to the course page
    """

    id: int
    shortname: str
    fullname: str
    displayname: str | None = None
    categoryid: int | None = None
    categoryname: str | None = None
    summary: str | None = None
    visible: int | None = None
    progress: float | None = None
    courseurl: str | None = None

    def __str__(self) -> str:
        """String representation of the course."""
        return f"Course(id={self.id}, name={self.fullname or self.shortname or 'Unknown'})"

    @classmethod
    def from_dict(cls, data: dict) -> "Course | None":
        """Create a Course from an API or cache record.

        Returns None when the record lacks an id, short name or full name.
        """
        course_id = as_int(data.get("id"))
        shortname = as_str(data.get("shortname"))
        fullname = as_str(data.get("fullname"))
        if course_id is None or not shortname or not fullname:
            return None
        return cls(
            id=course_id,
            shortname=shortname,
            fullname=fullname,
            displayname=as_str(data.get("displayname")),
            categoryid=as_int(data.get("categoryid")),
            categoryname=as_str(data.get("categoryname")),
            summary=as_str(data.get("summary")),
            visible=as_visible(data.get("visible")),
            progress=as_float(data.get("progress")),
            courseurl=as_str(data.get("courseurl")) or as_str(data.get("viewurl")),
        )

    def to_dict(self) -> dict:
        """Convert the Course object to a dictionary."""
        return {
            "id": self.id,
            "shortname": self.shortname,
            "fullname": self.fullname,
            "displayname": self.displayname,
            "categoryid": self.categoryid,
            "categoryname": self.categoryname,
            "summary": self.summary,
            "visible": self.visible,
            "progress": self.progress,
            "courseurl": self.courseurl,
        }


@dataclass
class ContentItem:
    """A file or link attached to a course module."""

    type: str | None = None
    filename: str | None = None
    filepath: str | None = None
    filesize: int | None = None
    fileurl: str | None = None
    mimetype: str | None = None
    timemodified: int | None = None
    url: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ContentItem":
        return cls(
            type=as_str(data.get("type")),
            filename=as_str(data.get("filename")),
            filepath=as_str(data.get("filepath")),
            filesize=as_int(data.get("filesize")),
            fileurl=as_str(data.get("fileurl")),
            mimetype=as_str(data.get("mimetype")),
            timemodified=as_int(data.get("timemodified")),
            url=as_str(data.get("url")),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "filename": self.filename,
            "filepath": self.filepath,
            "filesize": self.filesize,
            "fileurl": self.fileurl,
            "mimetype": self.mimetype,
            "timemodified": self.timemodified,
            "url": self.url,
        }


@dataclass
class CourseModule:
    """An activity inside a course section (forum, assignment, label, ...).

    Attributes:
        id: The course module ID (cmid)
        name: Activity name
        modname: Activity type tag, e.g. "forum", "assign", "label"
        description: Activity description (HTML)
        url: Direct link to the activity
        visible: 1 if visible to students
        instance: ID of the activity instance (e.g. the assignment ID)
        contents: Files and links attached to the activity
    """

    id: int
    name: str
    modname: str | None = None
    description: str | None = None
    url: str | None = None
    visible: int | None = None
    instance: int | None = None
    contents: list[ContentItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "CourseModule | None":
        module_id = as_int(data.get("id"))
        name = as_str(data.get("name"))
        if module_id is None or not name:
            return None
        raw_contents = data.get("contents")
        contents = [
            ContentItem.from_dict(item)
            for item in (raw_contents if isinstance(raw_contents, list) else [])
            if isinstance(item, dict)
        ]
        return cls(
            id=module_id,
            name=name,
            modname=as_str(data.get("modname")),
            description=as_str(data.get("description")),
            url=as_str(data.get("url")),
            visible=as_visible(data.get("visible")),
            instance=as_int(data.get("instance")),
            contents=contents,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "modname": self.modname,
            "description": self.description,
            "url": self.url,
            "visible": self.visible,
            "instance": self.instance,
            "contents": [item.to_dict() for item in self.contents],
        }


@dataclass
class CourseSection:
    """A section (week, topic) of a course.

    Attributes:
        id: The section ID
        name: Display name, may be empty
        section: Ordinal position of the section in the course
        summary: Section summary (HTML)
        visible: 1 if visible to students
        modules: Activities in display order
    """

    id: int
    name: str | None = None
    section: int | None = None
    summary: str | None = None
    visible: int | None = None
    modules: list[CourseModule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "CourseSection | None":
        section_id = as_int(data.get("id"))
        if section_id is None:
            return None
        raw_modules = data.get("modules")
        modules = []
        for item in raw_modules if isinstance(raw_modules, list) else []:
            if not isinstance(item, dict):
                continue
            module = CourseModule.from_dict(item)
            if module is not None:
                modules.append(module)
        return cls(
            id=section_id,
            name=as_str(data.get("name")),
            section=as_int(data.get("section")),
            summary=as_str(data.get("summary")),
            visible=as_visible(data.get("visible")),
            modules=modules,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "section": self.section,
            "summary": self.summary,
            "visible": self.visible,
            "modules": [module.to_dict() for module in self.modules],
        }


@dataclass
class UpcomingAssignment:
    """An assignment with a due date in the future.

    Attributes:
        id: The assignment ID
        name: The assignment name
        due_date: Due date as unix seconds
        course_id: ID of the course the assignment belongs to
        course_short_name: Short name of that course, if known
        course_full_name: Full name of that course, if known
    """

    id: int
    name: str
    due_date: int
    course_id: int
    course_short_name: str | None = None
    course_full_name: str | None = None

    @property
    def course_label(self) -> str:
        return self.course_full_name or self.course_short_name or "Unknown course"

    @classmethod
    def from_dict(cls, data: dict) -> "UpcomingAssignment | None":
        assignment_id = as_int(data.get("id"))
        name = as_str(data.get("name"))
        due_date = as_int(data.get("due_date"))
        course_id = as_int(data.get("course_id"))
        if assignment_id is None or not name or due_date is None or course_id is None:
            return None
        return cls(
            id=assignment_id,
            name=name,
            due_date=due_date,
            course_id=course_id,
            course_short_name=as_str(data.get("course_short_name")) or None,
            course_full_name=as_str(data.get("course_full_name")) or None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "due_date": self.due_date,
            "course_id": self.course_id,
            "course_short_name": self.course_short_name,
            "course_full_name": self.course_full_name,
        }


@dataclass
class AssignmentDetail:
    """Full assignment settings as returned by `mod_assign_get_assignments`."""

    id: int
    cmid: int | None
    course_id: int | None
    name: str
    intro: str | None = None
    due_date: int | None = None
    cutoff_date: int | None = None
    allow_submissions_from_date: int | None = None
    grading_due_date: int | None = None
    max_grade: float | None = None

    @classmethod
    def from_dict(cls, data: dict, course_id: int | None = None) -> "AssignmentDetail | None":
        assignment_id = as_int(data.get("id"))
        name = as_str(data.get("name"))
        if assignment_id is None or not name:
            return None
        return cls(
            id=assignment_id,
            cmid=as_int(data.get("cmid")),
            course_id=as_int(data.get("course")) if course_id is None else course_id,
            name=name,
            intro=as_str(data.get("intro")),
            due_date=as_int(data.get("duedate")),
            cutoff_date=as_int(data.get("cutoffdate")),
            allow_submissions_from_date=as_int(data.get("allowsubmissionsfromdate")),
            grading_due_date=as_int(data.get("gradingduedate")),
            max_grade=as_float(data.get("grade")),
        )


@dataclass
class SubmissionStatus:
    """The current user's submission state for one assignment."""

    submission_status: str | None = None
    grading_status: str | None = None
    graded: bool | None = None
    can_edit: bool | None = None
    time_modified: int | None = None
    grade: str | None = None
    feedback: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SubmissionStatus":
        attempt = data.get("lastattempt") if isinstance(data.get("lastattempt"), dict) else {}
        submission = attempt.get("submission") if isinstance(attempt.get("submission"), dict) else {}
        feedback = data.get("feedback") if isinstance(data.get("feedback"), dict) else {}
        graded = attempt.get("graded")
        can_edit = attempt.get("canedit")
        feedback_text = None
        for plugin in feedback.get("plugins") or []:
            if not isinstance(plugin, dict):
                continue
            texts = [
                as_str(area.get("text"))
                for area in plugin.get("editorfields") or []
                if isinstance(area, dict)
            ]
            texts = [text for text in texts if text]
            if texts:
                feedback_text = texts[0]
                break
        return cls(
            submission_status=as_str(submission.get("status")),
            grading_status=as_str(attempt.get("gradingstatus")),
            graded=graded if isinstance(graded, bool) else None,
            can_edit=can_edit if isinstance(can_edit, bool) else None,
            time_modified=as_int(submission.get("timemodified")),
            grade=as_str(feedback.get("gradefordisplay")),
            feedback=feedback_text,
        )
