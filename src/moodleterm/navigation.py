"""Selection, scrolling and expand/collapse state for the course page.

`NavigationState` owns the collapsed-id set and the selection cursor over the
flattened rows of the active course. Every command recomputes synchronously
in a fixed order: flatten the tree, clamp the selection, then reconcile the
scroll window so that

    0 <= selected_index < len(rows)
    0 <= scroll_offset <= max(0, len(rows) - visible_rows)
    scroll_offset <= selected_index < scroll_offset + visible_rows

hold after every transition. The collapsed set is a frozenset and is replaced,
never mutated, on each toggle.
"""

from loguru import logger

from moodleterm.moodle.course import CourseSection
from moodleterm.tree import Row, default_collapsed_ids, flatten

JUMP_ABANDONED_NOTICE = "That item is no longer in this course."


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def reconcile_scroll(selected: int, scroll: int, total: int, visible: int) -> int:
    """Smallest scroll movement that keeps `selected` inside the window.

    The previous offset is kept when it still satisfies the invariants.
    """
    if total <= 0:
        return 0
    visible = max(1, visible)
    max_scroll = max(0, total - visible)
    previous = clamp(scroll, 0, max_scroll)
    if selected < previous:
        return selected
    if selected >= previous + visible:
        return min(max(0, selected - visible + 1), max_scroll)
    return previous


class NavigationState:
    """Cursor, scroll window and collapse state over a course tree.

    Attributes:
        sections: Current course contents snapshot
        collapsed: Ids of rows whose children are hidden
        rows: Rows honoring `collapsed`
        all_rows: Rows with everything expanded, used by the content finder
        selected_index: Index of the selected row in `rows`
        scroll_offset: Index of the first visible row
        pending_jump: Row id to select on the next rebuild
        pending_init_course: Course whose default collapse set still needs
            computing from its real contents
        notice: Message for the user about the last command, if any
    """

    def __init__(self, visible_rows: int = 20):
        self.course_id: int | None = None
        self.sections: list[CourseSection] = []
        self.collapsed: frozenset[str] = frozenset()
        self.rows: list[Row] = []
        self.all_rows: list[Row] = []
        self.selected_index = 0
        self.scroll_offset = 0
        self.pending_jump: str | None = None
        self.pending_init_course: int | None = None
        self.notice: str | None = None
        self._visible_rows = max(1, visible_rows)
        self._recompute()

    @property
    def visible_rows(self) -> int:
        return self._visible_rows

    @property
    def page_size(self) -> int:
        return max(4, self._visible_rows // 3)

    @property
    def selected_row(self) -> Row | None:
        if not self.rows:
            return None
        return self.rows[self.selected_index]

    def window(self) -> list[Row]:
        """Rows currently inside the scroll window."""
        return self.rows[self.scroll_offset : self.scroll_offset + self._visible_rows]

    def index_of(self, row_id: str) -> int | None:
        for index, row in enumerate(self.rows):
            if row.id == row_id:
                return index
        return None

    def _recompute(self) -> None:
        self.rows = flatten(self.sections, self.collapsed)
        self.all_rows = flatten(self.sections)
        if self.pending_jump is not None:
            target = self.index_of(self.pending_jump)
            if target is not None:
                self.selected_index = target
            else:
                logger.warning(f"Jump target {self.pending_jump} not found after rebuild; giving up")
                self.notice = JUMP_ABANDONED_NOTICE
            self.pending_jump = None
        self._reconcile()

    def _reconcile(self) -> None:
        self.selected_index = clamp(self.selected_index, 0, max(len(self.rows) - 1, 0))
        self.scroll_offset = reconcile_scroll(
            self.selected_index, self.scroll_offset, len(self.rows), self._visible_rows
        )

    def resize(self, visible_rows: int) -> None:
        self._visible_rows = max(1, visible_rows)
        self._reconcile()

    def set_collapsed(self, collapsed) -> None:
        self.collapsed = frozenset(collapsed)
        self._recompute()

    def switch_course(self, course_id: int, cached_sections: list[CourseSection] | None = None) -> None:
        """Start showing a different course.

        The collapse set is seeded from cached contents when available, and
        recomputed once real contents arrive through `set_sections`.
        """
        self.course_id = course_id
        self.sections = list(cached_sections or [])
        self.collapsed = default_collapsed_ids(self.sections)
        self.selected_index = 0
        self.scroll_offset = 0
        self.pending_jump = None
        self.pending_init_course = course_id
        self.notice = None
        self._recompute()

    def set_sections(self, sections: list[CourseSection], loading: bool = False) -> None:
        """Replace the contents snapshot, e.g. after a fetch or refresh.

        Args:
            sections: The new contents.
            loading: True while a fetch for this course is still outstanding.
        """
        self.sections = list(sections)
        if self.pending_init_course is not None and self.pending_init_course == self.course_id:
            if self.sections or not loading:
                logger.debug(f"Applying default collapse state for course {self.course_id}")
                self.collapsed = default_collapsed_ids(self.sections)
                self.selected_index = 0
                self.scroll_offset = 0
                self.pending_init_course = None
        self._recompute()

    def move(self, delta: int) -> None:
        self.selected_index = clamp(self.selected_index + delta, 0, max(len(self.rows) - 1, 0))
        self._reconcile()

    def move_page(self, direction: int) -> None:
        self.move(direction * self.page_size)

    def home(self) -> None:
        self.move(-len(self.rows))

    def end(self) -> None:
        self.move(len(self.rows))

    def expand(self) -> None:
        """Expand the selected row, or step into its first child if already expanded."""
        row = self.selected_row
        if row is None or not row.collapsible:
            return
        if not row.expanded:
            self.set_collapsed(self.collapsed - {row.id})
            return
        for index in range(self.selected_index + 1, len(self.rows)):
            if self.rows[index].parent_id == row.id:
                self.selected_index = index
                self._reconcile()
                return

    def collapse(self) -> None:
        """Collapse the selected row, or step out to its parent."""
        row = self.selected_row
        if row is None:
            return
        if row.collapsible and row.expanded:
            self.set_collapsed(self.collapsed | {row.id})
            return
        if row.parent_id is None:
            return
        parent = self.index_of(row.parent_id)
        if parent is not None:
            self.selected_index = parent
            self._reconcile()

    def toggle(self) -> None:
        row = self.selected_row
        if row is None or not row.collapsible:
            return
        if row.expanded:
            self.set_collapsed(self.collapsed | {row.id})
        else:
            self.set_collapsed(self.collapsed - {row.id})

    def jump_to(self, row_id: str) -> bool:
        """Select a row by id, expanding its ancestors first.

        The target is looked up in the fully expanded tree. Returns False if
        it is not part of the current contents.
        """
        by_id = {row.id: row for row in self.all_rows}
        target = by_id.get(row_id)
        if target is None:
            logger.warning(f"Jump target {row_id} is not part of the current course")
            self.notice = JUMP_ABANDONED_NOTICE
            return False

        ancestors = set()
        current = target
        while current.parent_id is not None:
            parent = by_id.get(current.parent_id)
            if parent is None:
                break
            if parent.collapsible:
                ancestors.add(parent.id)
            current = parent

        self.notice = None
        self.pending_jump = row_id
        self.collapsed = self.collapsed - ancestors
        self._recompute()
        return self.selected_row is not None and self.selected_row.id == row_id
