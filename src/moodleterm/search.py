"""Rank courses and course rows against a fuzzy query.

Both rankers score each candidate with `fuzzy_score`, drop non-matches and
sort by descending score with deterministic tie-breaks. An empty query
returns the candidates unchanged.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from moodleterm.fuzzy import fuzzy_score
from moodleterm.moodle.course import Course
from moodleterm.tree import Row, RowKind, normalize_type

T = TypeVar("T")


@dataclass(frozen=True)
class RankedResult(Generic[T]):
    item: T
    score: float


COURSE_FIELD_WEIGHTS = (
    ("shortname", 1.2),
    ("fullname", 1.0),
    ("displayname", 0.95),
    ("categoryname", 0.7),
    ("summary", 0.35),
)

ROW_KIND_WEIGHTS = {
    RowKind.SECTION: 1.15,
    RowKind.ACTIVITY: 1.1,
    RowKind.LABEL: 1.05,
    RowKind.CONTENT_ITEM: 1.0,
    RowKind.ACTIVITY_DESCRIPTION: 0.85,
    RowKind.ACTIVITY_LINK: 0.8,
    RowKind.SUMMARY: 0.75,
    RowKind.EMPTY_PLACEHOLDER: 0.0,
}
_unweighted = set(RowKind) - set(ROW_KIND_WEIGHTS)
if _unweighted:
    raise RuntimeError(f"No search weight for row kinds: {sorted(kind.value for kind in _unweighted)}")


def score_course(course: Course, query: str) -> float | None:
    """Best weighted score over the course's text fields, or None if none match."""
    best = None
    for field_name, weight in COURSE_FIELD_WEIGHTS:
        score = fuzzy_score(query, getattr(course, field_name) or "")
        if score is None:
            continue
        weighted = score * weight
        if best is None or weighted > best:
            best = weighted
    return best


def rank_courses(courses: list[Course], query: str) -> list[RankedResult[Course]]:
    query = query.strip()
    if not query:
        return [RankedResult(course, 0.0) for course in courses]
    ranked = []
    for course in courses:
        score = score_course(course, query)
        if score is not None:
            ranked.append(RankedResult(course, score))
    ranked.sort(key=lambda result: (-result.score, result.item.fullname.casefold()))
    return ranked


def filter_courses(courses: list[Course], query: str) -> list[Course]:
    """Courses matching `query`, best first."""
    return [result.item for result in rank_courses(courses, query)]


def is_searchable(row: Row) -> bool:
    return row.kind is not RowKind.EMPTY_PLACEHOLDER


def score_row(row: Row, query: str) -> float | None:
    score = fuzzy_score(query, row.text)
    if score is None:
        return None
    return score * ROW_KIND_WEIGHTS[row.kind]


def rank_rows(rows: list[Row], query: str) -> list[RankedResult[Row]]:
    searchable = [row for row in rows if is_searchable(row)]
    query = query.strip()
    if not query:
        return [RankedResult(row, 0.0) for row in searchable]
    ranked = []
    for row in searchable:
        score = score_row(row, query)
        if score is not None:
            ranked.append(RankedResult(row, score))
    ranked.sort(key=lambda result: (-result.score, result.item.text.casefold(), result.item.id.casefold()))
    return ranked


def filter_rows(rows: list[Row], query: str) -> list[Row]:
    """Searchable rows matching `query`, best first."""
    return [result.item for result in rank_rows(rows, query)]


@dataclass(frozen=True)
class SearchTarget:
    """A named filter applied to the row pool before ranking.

    Attributes:
        id: Stable identifier, e.g. "all", "module-type:assign", "kind:label"
        label: Text shown in the finder header
        mode: "all", "module-type" or "row-kind"
        module_type: Activity type tag for "module-type" targets
        row_kind: Row kind for "row-kind" targets
    """

    id: str
    label: str
    mode: str
    module_type: str | None = None
    row_kind: RowKind | None = None


ALL_TARGET = SearchTarget(id="all", label="All", mode="all")

MODULE_TYPE_LABELS = {
    "assign": "Assignments",
    "quiz": "Quizzes",
    "forum": "Forums",
    "resource": "Resources",
    "page": "Pages",
    "book": "Books",
    "folder": "Folders",
    "url": "Link Activities",
}
MODULE_TYPE_ORDER = list(MODULE_TYPE_LABELS)

KIND_TARGETS = (
    SearchTarget(id="kind:section", label="Sections", mode="row-kind", row_kind=RowKind.SECTION),
    SearchTarget(id="kind:label", label="Labels", mode="row-kind", row_kind=RowKind.LABEL),
    SearchTarget(id="kind:content-item", label="Files & Items", mode="row-kind", row_kind=RowKind.CONTENT_ITEM),
    SearchTarget(id="kind:module-url", label="URLs", mode="row-kind", row_kind=RowKind.ACTIVITY_LINK),
    SearchTarget(
        id="kind:module-description",
        label="Descriptions",
        mode="row-kind",
        row_kind=RowKind.ACTIVITY_DESCRIPTION,
    ),
    SearchTarget(id="kind:summary", label="Summaries", mode="row-kind", row_kind=RowKind.SUMMARY),
)


def module_type_label(module_type: str) -> str:
    """Human label for an activity type, e.g. "assign" -> "Assignments"."""
    known = MODULE_TYPE_LABELS.get(module_type)
    if known:
        return known
    words = " ".join(module_type.replace("_", " ").replace("-", " ").split())
    if not words:
        return "Other Activities"
    return f"{words[0].upper()}{words[1:]} Activities"


def _module_type_rank(module_type: str) -> tuple[int, str]:
    if module_type in MODULE_TYPE_ORDER:
        return MODULE_TYPE_ORDER.index(module_type), ""
    return len(MODULE_TYPE_ORDER), module_type.casefold()


def build_targets(rows: list[Row]) -> list[SearchTarget]:
    """All, then one target per activity type present, then the row-kind targets."""
    module_types = {
        normalize_type(row.module_type)
        for row in rows
        if row.kind is RowKind.ACTIVITY and normalize_type(row.module_type)
    }
    type_targets = [
        SearchTarget(
            id=f"module-type:{module_type}",
            label=module_type_label(module_type),
            mode="module-type",
            module_type=module_type,
        )
        for module_type in sorted(module_types, key=_module_type_rank)
    ]
    return [ALL_TARGET, *type_targets, *KIND_TARGETS]


def filter_rows_by_target(rows: list[Row], target: SearchTarget) -> list[Row]:
    if target.mode == "all":
        return list(rows)
    if target.mode == "module-type":
        module_type = normalize_type(target.module_type)
        return [
            row
            for row in rows
            if row.kind is RowKind.ACTIVITY and normalize_type(row.module_type) == module_type
        ]
    return [row for row in rows if row.kind is target.row_kind]


def cycle_target_index(current: int, delta: int, length: int) -> int:
    """Move through the target list with wrap-around."""
    if length <= 0:
        return 0
    return (current + delta) % length
