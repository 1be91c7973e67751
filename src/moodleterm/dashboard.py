"""Top-level controller for the interactive client.

`Dashboard` owns everything the shell renders: the course list, upcoming
assignments, the per-course section snapshots, which page is showing, the
course page's `NavigationState` and the open finder overlay, if any. The
shell turns input into `Command` values and hands them to `dispatch`.

Client failures never escape the controller; they end up in `error` (or
`course_error` on the course page) and the last good data stays on screen.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from moodleterm import cache
from moodleterm.finder import ContentFinder, CourseFinder, FinderOverlay, InputCapture
from moodleterm.moodle.client import MoodleClient, MoodleError, enrich_assignments_with_course_names
from moodleterm.moodle.course import (
    AssignmentDetail,
    Course,
    CourseModule,
    CourseSection,
    SubmissionStatus,
    UpcomingAssignment,
)
from moodleterm.navigation import NavigationState, clamp
from moodleterm.shortcuts import Command
from moodleterm.tree import Row, find_module_for_row, normalize_type


class ViewMode(Enum):
    DASHBOARD = "dashboard"
    COURSE = "course"


def resolve_assignment_for_module(
    module: CourseModule, assignments: list[AssignmentDetail]
) -> AssignmentDetail | None:
    """Find the assignment record behind an activity.

    Moodle links the two through the activity's instance id; older payloads
    only carry the course module id on the assignment side.
    """
    if module.instance is not None:
        for assignment in assignments:
            if assignment.id == module.instance:
                return assignment
    for assignment in assignments:
        if assignment.cmid == module.id:
            return assignment
    return None


@dataclass
class AssignmentView:
    """What the shell shows for a selected assignment activity."""

    module: CourseModule
    detail: AssignmentDetail | None = None
    status: SubmissionStatus | None = None
    error: str | None = None


class Dashboard:
    """State and commands of the interactive client.

    Attributes:
        courses: Enrolled courses, sorted by full name
        upcoming: Upcoming assignments, soonest first
        data_source: "live", "cache" or "none", where `courses` came from
        view: The page currently showing
        active_course: The course shown on the course page
        sections_by_course: Contents fetched this session, by course id
        navigation: Selection and collapse state of the course page
        capture: Input capture shared by all overlays
        finder: The open finder overlay, if any
        error: Last dashboard-level failure
        course_error: Last failure loading the active course
        dashboard_index: Selected row of the upcoming assignment list
    """

    def __init__(self, client: MoodleClient, visible_rows: int = 20, use_cache: bool = True):
        self.client = client
        self.use_cache = use_cache
        self.courses: list[Course] = []
        self.upcoming: list[UpcomingAssignment] = []
        self.data_source = "none"
        self.view = ViewMode.DASHBOARD
        self.active_course: Course | None = None
        self.sections_by_course: dict[int, list[CourseSection]] = {}
        self.navigation = NavigationState(visible_rows=visible_rows)
        self.capture = InputCapture()
        self.finder: FinderOverlay | None = None
        self.error: str | None = None
        self.course_error: str | None = None
        self.dashboard_index = 0
        self.assignments_by_course: dict[int, list[AssignmentDetail]] = {}
        self.visible_rows = visible_rows

    # Dashboard page

    def load_dashboard(self, force_refresh: bool = False) -> None:
        """Load courses and upcoming assignments.

        Cached data is used unless `force_refresh` is set. When the live fetch
        fails, the cache is used as a fallback and the failure kept in `error`.
        """
        if not force_refresh and self.use_cache:
            cached = cache.get_cached_dashboard()
            if cached is not None:
                self.courses, self.upcoming = cached
                self.data_source = "cache"
                self.error = None
                logger.debug(f"Loaded {len(self.courses)} courses from cache")
                return

        try:
            courses = self.client.fetch_courses()
            upcoming = enrich_assignments_with_course_names(self.client.fetch_upcoming_assignments(), courses)
        except MoodleError as e:
            logger.warning(f"Could not load dashboard: {e}")
            self.error = str(e)
            cached = cache.get_cached_dashboard() if self.use_cache else None
            if cached is not None:
                self.courses, self.upcoming = cached
                self.data_source = "cache"
            return

        self.courses = courses
        self.upcoming = upcoming
        self.data_source = "live"
        self.error = None
        self.dashboard_index = clamp(self.dashboard_index, 0, max(len(self.upcoming) - 1, 0))
        if self.use_cache:
            cache.save_dashboard(courses, upcoming)
        logger.info(f"Loaded {len(courses)} courses and {len(upcoming)} upcoming assignments")

    def course_by_id(self, course_id: int) -> Course | None:
        for course in self.courses:
            if course.id == course_id:
                return course
        return None

    # Course page

    def load_course_contents(self, course_id: int, force_refresh: bool = False) -> list[CourseSection] | None:
        """Make sure the sections of a course are available.

        Contents already fetched this session are reused unless
        `force_refresh` is set. On failure the previous snapshot is kept.
        """
        if not force_refresh and course_id in self.sections_by_course:
            return self.sections_by_course[course_id]

        try:
            sections = self.client.fetch_course_contents(course_id)
        except MoodleError as e:
            logger.warning(f"Could not load course {course_id}: {e}")
            if course_id == self.navigation.course_id:
                self.course_error = str(e)
            return self.sections_by_course.get(course_id)

        self.sections_by_course[course_id] = sections
        if course_id == self.navigation.course_id:
            self.course_error = None
        if self.use_cache:
            cache.save_course_sections(course_id, sections)
        return sections

    def open_course(self, course: Course) -> None:
        """Switch to the course page for `course`.

        The page starts from whatever contents are already known, fetched or
        cached, and is rebuilt once the live contents arrive.
        """
        logger.debug(f"Opening {course}")
        self.close_finder()
        self.view = ViewMode.COURSE
        self.active_course = course
        self.course_error = None

        known = self.sections_by_course.get(course.id)
        if known is None and self.use_cache:
            known = cache.get_cached_course_sections(course.id)
        self.navigation.switch_course(course.id, known)

        sections = self.load_course_contents(course.id)
        self.navigation.set_sections(sections if sections is not None else (known or []), loading=False)

    def back(self) -> None:
        if self.finder is not None:
            self.close_finder()
            return
        self.view = ViewMode.DASHBOARD
        self.course_error = None

    def refresh(self) -> None:
        """Reload the current page from Moodle."""
        if self.view is ViewMode.COURSE and self.active_course is not None:
            sections = self.load_course_contents(self.active_course.id, force_refresh=True)
            if sections is not None:
                self.navigation.set_sections(sections)
            return
        self.load_dashboard(force_refresh=True)

    @property
    def selected_row(self) -> Row | None:
        if self.view is not ViewMode.COURSE:
            return None
        return self.navigation.selected_row

    @property
    def selected_module(self) -> CourseModule | None:
        return find_module_for_row(self.navigation.sections, self.selected_row)

    @property
    def selected_link(self) -> str | None:
        """URL to open for the current selection, on either page."""
        if self.view is ViewMode.COURSE:
            row = self.selected_row
            return row.link_url if row is not None else None
        if not self.upcoming:
            return None
        course = self.course_by_id(self.upcoming[self.dashboard_index].course_id)
        return course.courseurl if course is not None else None

    def open_assignment(self) -> AssignmentView | None:
        """Look up assignment settings and submission state for the selected activity.

        Returns None when the selection is not an assignment activity.
        """
        module = self.selected_module
        if module is None or normalize_type(module.modname) != "assign" or self.active_course is None:
            return None

        course_id = self.active_course.id
        view = AssignmentView(module=module)
        try:
            if course_id not in self.assignments_by_course:
                self.assignments_by_course[course_id] = self.client.fetch_course_assignments(course_id)
            view.detail = resolve_assignment_for_module(module, self.assignments_by_course[course_id])
            if view.detail is None:
                view.error = "Assignment details are not available for this activity."
                return view
            view.status = self.client.fetch_submission_status(view.detail.id)
        except MoodleError as e:
            logger.warning(f"Could not load assignment {module.id}: {e}")
            view.error = str(e)
        return view

    # Finders

    def open_course_finder(self) -> CourseFinder:
        self.close_finder()
        self.finder = CourseFinder(self.courses, capture=self.capture, visible_rows=self.visible_rows)
        return self.finder

    def open_content_finder(self) -> ContentFinder | None:
        if self.view is not ViewMode.COURSE:
            return None
        self.close_finder()
        self.finder = ContentFinder(self.navigation.all_rows, capture=self.capture, visible_rows=self.visible_rows)
        return self.finder

    def close_finder(self) -> None:
        if self.finder is not None:
            self.finder.close()
            self.finder = None

    def apply_course_finder(self) -> Course | None:
        if not isinstance(self.finder, CourseFinder):
            return None
        course = self.finder.apply()
        self.finder = None
        if course is not None:
            self.open_course(course)
        return course

    def apply_content_finder(self) -> Row | None:
        if not isinstance(self.finder, ContentFinder):
            return None
        row = self.finder.apply()
        self.finder = None
        if row is not None:
            self.navigation.jump_to(row.id)
        return row

    def apply_finder(self):
        if isinstance(self.finder, CourseFinder):
            return self.apply_course_finder()
        return self.apply_content_finder()

    # Commands

    def _move_dashboard(self, delta: int) -> None:
        self.dashboard_index = clamp(self.dashboard_index + delta, 0, max(len(self.upcoming) - 1, 0))

    def dispatch(self, command: Command) -> None:
        """Run one named command against whatever currently has input."""
        if self.finder is not None:
            self._dispatch_finder(command)
            return
        if self.capture.blocked:
            logger.debug(f"Ignoring {command.value} while input is captured")
            return

        if command is Command.REFRESH:
            self.refresh()
        elif command is Command.BACK:
            self.back()
        elif command is Command.OPEN_COURSE_FINDER:
            self.open_course_finder()
        elif command is Command.OPEN_CONTENT_FINDER:
            self.open_content_finder()
        elif self.view is ViewMode.DASHBOARD:
            self._dispatch_dashboard(command)
        else:
            self._dispatch_course(command)

    def _dispatch_dashboard(self, command: Command) -> None:
        if command is Command.UP:
            self._move_dashboard(-1)
        elif command is Command.DOWN:
            self._move_dashboard(1)
        elif command is Command.HOME:
            self.dashboard_index = 0
        elif command is Command.END:
            self._move_dashboard(len(self.upcoming))
        elif command is Command.EXPAND and self.upcoming:
            course = self.course_by_id(self.upcoming[self.dashboard_index].course_id)
            if course is not None:
                self.open_course(course)

    def _dispatch_course(self, command: Command) -> None:
        navigation = self.navigation
        actions = {
            Command.UP: lambda: navigation.move(-1),
            Command.DOWN: lambda: navigation.move(1),
            Command.PAGE_UP: lambda: navigation.move_page(-1),
            Command.PAGE_DOWN: lambda: navigation.move_page(1),
            Command.HOME: navigation.home,
            Command.END: navigation.end,
            Command.EXPAND: navigation.expand,
            Command.COLLAPSE: navigation.collapse,
            Command.TOGGLE: navigation.toggle,
        }
        action = actions.get(command)
        if action is not None:
            navigation.notice = None
            action()

    def _dispatch_finder(self, command: Command) -> None:
        finder = self.finder
        if command is Command.FINDER_APPLY:
            self.apply_finder()
        elif command in (Command.FINDER_CANCEL, Command.BACK):
            self.close_finder()
        elif command is Command.UP:
            finder.move(-1)
        elif command is Command.DOWN:
            finder.move(1)
        elif command is Command.PAGE_UP:
            finder.move(-finder.visible_rows)
        elif command is Command.PAGE_DOWN:
            finder.move(finder.visible_rows)
        elif command is Command.HOME:
            finder.home()
        elif command is Command.END:
            finder.end()
        elif command is Command.FINDER_PREVIOUS_TARGET and isinstance(finder, ContentFinder):
            finder.cycle_target(-1)
        elif command is Command.FINDER_NEXT_TARGET and isinstance(finder, ContentFinder):
            finder.cycle_target(1)
