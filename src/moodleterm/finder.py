"""Search overlays for picking a course or a row of the course tree.

An overlay holds a draft query, ranks its candidates on every keystroke and
keeps its own result cursor. Applying returns the chosen item and closes the
overlay; the controller turns that item into "open course" or "jump to row".
While open, an overlay holds a capture on the controller's `InputCapture`
so the page underneath stops reacting to keys.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

from loguru import logger

from moodleterm.moodle.course import Course
from moodleterm.navigation import clamp, reconcile_scroll
from moodleterm.search import (
    ALL_TARGET,
    SearchTarget,
    build_targets,
    cycle_target_index,
    filter_courses,
    filter_rows,
    filter_rows_by_target,
)
from moodleterm.tree import Row

T = TypeVar("T")


class InputCapture:
    """Reference count of overlays currently capturing keyboard input."""

    def __init__(self):
        self.count = 0

    @property
    def blocked(self) -> bool:
        return self.count > 0

    def acquire(self) -> Callable[[], None]:
        """Take a capture. The returned release function is safe to call twice."""
        self.count += 1
        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            self.count = max(0, self.count - 1)

        return release

    @contextmanager
    def capture(self) -> Iterator[None]:
        release = self.acquire()
        try:
            yield
        finally:
            release()


class FinderOverlay(ABC, Generic[T]):
    """Query box plus ranked, scrollable results."""

    title = "Finder"

    def __init__(self, capture: InputCapture | None = None, visible_rows: int = 10):
        self.query = ""
        self.selected_index = 0
        self.scroll_offset = 0
        self.visible_rows = max(1, visible_rows)
        self.results: list[T] = []
        self.is_open = True
        self._release = capture.acquire() if capture is not None else None

    @abstractmethod
    def _rank(self, query: str) -> list[T]:
        """Candidates matching `query`, best first."""
        pass

    def refresh(self) -> None:
        self.results = self._rank(self.query)
        self._reconcile()

    def _reconcile(self) -> None:
        self.selected_index = clamp(self.selected_index, 0, max(len(self.results) - 1, 0))
        self.scroll_offset = reconcile_scroll(
            self.selected_index, self.scroll_offset, len(self.results), self.visible_rows
        )

    def set_query(self, query: str) -> None:
        """Replace the draft query and restart at the top of the results."""
        self.query = query
        self.selected_index = 0
        self.scroll_offset = 0
        self.refresh()

    def move(self, delta: int) -> None:
        self.selected_index += delta
        self._reconcile()

    def home(self) -> None:
        self.selected_index = 0
        self._reconcile()

    def end(self) -> None:
        self.selected_index = max(len(self.results) - 1, 0)
        self._reconcile()

    def window(self) -> list[T]:
        return self.results[self.scroll_offset : self.scroll_offset + self.visible_rows]

    @property
    def selected(self) -> T | None:
        if not self.results:
            return None
        return self.results[self.selected_index]

    def close(self) -> None:
        self.is_open = False
        if self._release is not None:
            self._release()

    def apply(self) -> T | None:
        """Commit the current selection, ranked against the latest query, and close."""
        results = self._rank(self.query)
        chosen = results[clamp(self.selected_index, 0, len(results) - 1)] if results else None
        self.close()
        return chosen


class CourseFinder(FinderOverlay[Course]):
    title = "Course Finder"

    def __init__(self, courses: list[Course], capture: InputCapture | None = None, visible_rows: int = 10):
        super().__init__(capture=capture, visible_rows=visible_rows)
        self.courses = list(courses)
        self.refresh()

    def _rank(self, query: str) -> list[Course]:
        return filter_courses(self.courses, query)


class ContentFinder(FinderOverlay[Row]):
    """Search over the fully expanded course tree, narrowed by a target."""

    title = "Course Content Finder"

    def __init__(self, rows: list[Row], capture: InputCapture | None = None, visible_rows: int = 10):
        super().__init__(capture=capture, visible_rows=visible_rows)
        self.rows = list(rows)
        self.targets = build_targets(self.rows)
        self.target_index = 0
        self.refresh()

    @property
    def target(self) -> SearchTarget:
        if not self.targets:
            return ALL_TARGET
        return self.targets[clamp(self.target_index, 0, len(self.targets) - 1)]

    def _rank(self, query: str) -> list[Row]:
        return filter_rows(filter_rows_by_target(self.rows, self.target), query)

    def cycle_target(self, delta: int) -> None:
        self.target_index = cycle_target_index(self.target_index, delta, len(self.targets))
        logger.debug(f"Content finder target is now {self.target.id}")
        self.selected_index = 0
        self.scroll_offset = 0
        self.refresh()

    def select_target(self, target_id: str) -> bool:
        for index, target in enumerate(self.targets):
            if target.id == target_id:
                self.target_index = index
                self.selected_index = 0
                self.scroll_offset = 0
                self.refresh()
                return True
        return False
