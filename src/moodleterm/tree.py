"""Flatten course contents into the rows shown by the course page.

A course is a list of sections, each holding activities, each holding files
and links. `flatten` turns that tree into an ordered list of `Row` objects,
honoring the set of collapsed node ids. Row ids are built from Moodle ids,
never from positions, so collapse state and jump targets survive a rebuild.
"""

import re
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from moodleterm.moodle.course import CourseModule, CourseSection

EMPTY_ROW_ID = "empty"
EMPTY_COURSE_TEXT = "No visible course content returned by Moodle."
EMPTY_SECTION_TEXT = "(No activities in this section)"
EMPTY_LABEL_TEXT = "(Empty label)"
CONTENT_ITEM_FALLBACK = "content item"


class RowKind(Enum):
    """Every kind of row the course page can show."""

    SECTION = "section"
    ACTIVITY = "module"
    ACTIVITY_DESCRIPTION = "module-description"
    ACTIVITY_LINK = "module-url"
    CONTENT_ITEM = "content-item"
    LABEL = "label"
    SUMMARY = "summary"
    EMPTY_PLACEHOLDER = "empty"


@dataclass(frozen=True)
class Row:
    """One line of the flattened course tree.

    Attributes:
        id: Stable identifier derived from Moodle ids
        kind: What the row represents
        depth: Indentation level, 0 for sections
        text: Display text, already stripped of HTML
        icon: Glyph shown before the text
        collapsible: Whether the row can be expanded and collapsed
        expanded: Whether the row's children are currently shown
        parent_id: Id of the row this one is nested under
        link_url: URL to open for this row, if any
        module_type: Normalized activity type tag, for activity rows
    """

    id: str
    kind: RowKind
    depth: int
    text: str
    icon: str
    collapsible: bool = False
    expanded: bool = False
    parent_id: str | None = None
    link_url: str | None = None
    module_type: str | None = None


SECTION_ICON = "📁"
SUMMARY_ICON = "🗒"
BULLET_ICON = "•"
LINK_ICON = "🔗"
LABEL_ICON = "🏷"
GENERIC_MODULE_ICON = "📦"

MODULE_TYPE_ICONS = {
    "forum": "💬",
    "quiz": "📝",
    "resource": "📄",
    "assign": "✅",
    "url": LINK_ICON,
    "page": "📃",
    "book": "📚",
    "folder": SECTION_ICON,
    "label": LABEL_ICON,
}

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_type(value: str | None) -> str:
    return (value or "").strip().lower()


def strip_html(value: str | None) -> str:
    """Reduce an HTML fragment to a single line of plain text.

    Character references are decoded, tags are dropped, and whitespace runs
    collapse to one space.
    """
    if not value:
        return ""
    if "<" in value or "&" in value:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
            value = BeautifulSoup(value, "html.parser").get_text(" ")
        # Decoded references can themselves spell out markup
        value = _TAG_RE.sub(" ", value)
    return _WHITESPACE_RE.sub(" ", value).strip()


def section_node_id(section_id: int) -> str:
    return f"section:{section_id}"


def module_node_id(section_id: int, module_id: int) -> str:
    return f"module:{section_id}:{module_id}"


def module_icon(modname: str | None) -> str:
    return MODULE_TYPE_ICONS.get(normalize_type(modname), GENERIC_MODULE_ICON)


def content_icon(content_type: str | None) -> str:
    normalized = normalize_type(content_type)
    if normalized == "folder":
        return SECTION_ICON
    if normalized == "url":
        return LINK_ICON
    return "📄"


def is_label(module: CourseModule) -> bool:
    return normalize_type(module.modname) == "label"


def _section_name(section: CourseSection, position: int) -> str:
    name = (section.name or "").strip()
    if name:
        return name
    ordinal = section.section if section.section is not None else position + 1
    return f"Section {ordinal}"


def _module_rows(section: CourseSection, module: CourseModule, collapsed: frozenset) -> list[Row]:
    section_row_id = section_node_id(section.id)

    if is_label(module):
        text = strip_html(module.description) or strip_html(module.name) or EMPTY_LABEL_TEXT
        return [
            Row(
                id=f"label:{section.id}:{module.id}",
                kind=RowKind.LABEL,
                depth=1,
                text=text,
                icon=LABEL_ICON,
                parent_id=section_row_id,
            )
        ]

    module_id = module_node_id(section.id, module.id)
    is_collapsed = module_id in collapsed
    rows = [
        Row(
            id=module_id,
            kind=RowKind.ACTIVITY,
            depth=1,
            text=module.name or "(Unnamed activity)",
            icon=module_icon(module.modname),
            collapsible=True,
            expanded=not is_collapsed,
            parent_id=section_row_id,
            link_url=module.url or None,
            module_type=normalize_type(module.modname) or None,
        )
    ]
    if is_collapsed:
        return rows

    description = strip_html(module.description)
    if description:
        rows.append(
            Row(
                id=f"module-description:{section.id}:{module.id}",
                kind=RowKind.ACTIVITY_DESCRIPTION,
                depth=2,
                text=description,
                icon=BULLET_ICON,
                parent_id=module_id,
            )
        )

    if module.url:
        rows.append(
            Row(
                id=f"module-url:{section.id}:{module.id}",
                kind=RowKind.ACTIVITY_LINK,
                depth=2,
                text=module.url,
                icon=LINK_ICON,
                parent_id=module_id,
                link_url=module.url,
            )
        )

    for index, item in enumerate(module.contents):
        label = item.filename or item.type or CONTENT_ITEM_FALLBACK
        url = item.fileurl or item.url
        rows.append(
            Row(
                id=f"content:{section.id}:{module.id}:{index}",
                kind=RowKind.CONTENT_ITEM,
                depth=2,
                text=f"{label}: {url}" if url else label,
                icon=content_icon(item.type),
                parent_id=module_id,
                link_url=url or None,
            )
        )
    return rows


def flatten(sections: list[CourseSection], collapsed: Iterable[str] = frozenset()) -> list[Row]:
    """Flatten course sections into display rows.

    Children of a collapsed section or activity are omitted. Labels never
    have children. An empty course yields a single placeholder row.

    Args:
        sections: Course sections in display order.
        collapsed: Ids of rows whose children are hidden.

    Returns:
        The rows in display order.
    """
    if not sections:
        return [Row(id=EMPTY_ROW_ID, kind=RowKind.EMPTY_PLACEHOLDER, depth=0, text=EMPTY_COURSE_TEXT, icon=BULLET_ICON)]

    collapsed = collapsed if isinstance(collapsed, frozenset) else frozenset(collapsed)
    rows: list[Row] = []

    for position, section in enumerate(sections):
        section_id = section_node_id(section.id)
        section_collapsed = section_id in collapsed
        rows.append(
            Row(
                id=section_id,
                kind=RowKind.SECTION,
                depth=0,
                text=_section_name(section, position),
                icon=SECTION_ICON,
                collapsible=True,
                expanded=not section_collapsed,
            )
        )
        if section_collapsed:
            continue

        summary = strip_html(section.summary)
        if summary:
            rows.append(
                Row(
                    id=f"summary:{section.id}",
                    kind=RowKind.SUMMARY,
                    depth=1,
                    text=summary,
                    icon=SUMMARY_ICON,
                    parent_id=section_id,
                )
            )

        if not section.modules:
            rows.append(
                Row(
                    id=f"section-empty:{section.id}",
                    kind=RowKind.SUMMARY,
                    depth=1,
                    text=EMPTY_SECTION_TEXT,
                    icon=BULLET_ICON,
                    parent_id=section_id,
                )
            )
            continue

        for module in section.modules:
            rows.extend(_module_rows(section, module, collapsed))

    return rows


def default_collapsed_ids(sections: list[CourseSection]) -> frozenset[str]:
    """Collapse every section and every activity except labels."""
    collapsed = set()
    for section in sections:
        collapsed.add(section_node_id(section.id))
        for module in section.modules:
            if not is_label(module):
                collapsed.add(module_node_id(section.id, module.id))
    return frozenset(collapsed)


_MODULE_ROW_RE = re.compile(r"^module:(\d+):(\d+)$")


def find_module_for_row(sections: list[CourseSection], row: Row | None) -> CourseModule | None:
    """Return the activity an activity row was built from, if it still exists."""
    if row is None or row.kind is not RowKind.ACTIVITY:
        return None
    match = _MODULE_ROW_RE.match(row.id)
    if not match:
        return None
    section_id, module_id = int(match.group(1)), int(match.group(2))
    for section in sections:
        if section.id != section_id:
            continue
        for module in section.modules:
            if module.id == module_id:
                return module
    return None
