#!/usr/bin/env python
"""Tests for search module."""

from moodleterm.fuzzy import fuzzy_score
from moodleterm.moodle.course import Course
from moodleterm.search import (
    ALL_TARGET,
    COURSE_FIELD_WEIGHTS,
    ROW_KIND_WEIGHTS,
    build_targets,
    cycle_target_index,
    filter_courses,
    filter_rows,
    filter_rows_by_target,
    module_type_label,
    rank_rows,
    score_course,
)
from moodleterm.tree import EMPTY_ROW_ID, Row, RowKind, flatten


def make_row(row_id, kind, text, module_type=None):
    return Row(id=row_id, kind=kind, depth=0, text=text, icon="", module_type=module_type)


class TestCourseSearch:
    """Test ranking courses."""

    def test_empty_query_keeps_order(self, courses):
        """An empty or blank query returns the input unchanged."""
        assert filter_courses(courses, "") == courses
        assert filter_courses(courses, "   ") == courses

    def test_non_matches_dropped(self, courses):
        """Only matching courses are returned."""
        assert [course.id for course in filter_courses(courses, "hist")] == [2]

    def test_category_matches(self, courses):
        """The category name is searched too."""
        assert [course.id for course in filter_courses(courses, "humanities")] == [2]

    def test_shortname_weighs_most(self):
        """The same text scores higher in the short name than in the full name."""
        by_short = Course(id=1, shortname="algebra", fullname="zzz")
        by_full = Course(id=2, shortname="zzz", fullname="algebra")
        assert score_course(by_short, "algebra") > score_course(by_full, "algebra")
        assert [course.id for course in filter_courses([by_full, by_short], "algebra")] == [1, 2]

    def test_tie_break_on_full_name(self):
        """Equal scores are ordered by full name, ignoring case."""
        beta = Course(id=1, shortname="X", fullname="beta")
        alpha = Course(id=2, shortname="X", fullname="Alpha")
        assert [course.fullname for course in filter_courses([beta, alpha], "x")] == ["Alpha", "beta"]


class TestRowSearch:
    """Test ranking course rows."""

    def test_placeholder_never_returned(self):
        """The empty-course row is not searchable, even with an empty query."""
        rows = flatten([])
        assert rows[0].id == EMPTY_ROW_ID
        assert filter_rows(rows, "") == []
        assert filter_rows(rows, "no") == []

    def test_kind_weight_orders_equal_text(self):
        """A section outranks a summary with the same text."""
        summary = make_row("summary:1", RowKind.SUMMARY, "Week 1")
        section = make_row("section:1", RowKind.SECTION, "Week 1")
        assert [row.id for row in filter_rows([summary, section], "week")] == ["section:1", "summary:1"]

    def test_tie_break_on_text_then_id(self):
        """Equal scores are ordered by text, then id."""
        rows = [
            make_row("module:1:2", RowKind.ACTIVITY, "Quiz"),
            make_row("module:1:1", RowKind.ACTIVITY, "Quiz"),
        ]
        assert [row.id for row in filter_rows(rows, "quiz")] == ["module:1:1", "module:1:2"]

    def test_scores_descending(self, sections):
        """Results come back best first."""
        ranked = rank_rows(flatten(sections), "slides")
        scores = [result.score for result in ranked]
        assert scores == sorted(scores, reverse=True)
        assert ranked[0].item.id == "module:10:102"


class TestSearchTargets:
    """Test the finder's target filters."""

    def test_build_targets_order(self):
        """All first, then activity types in known order, unknown types, then row kinds."""
        rows = [
            make_row("module:1:1", RowKind.ACTIVITY, "A", "quiz"),
            make_row("module:1:2", RowKind.ACTIVITY, "B", "zzz"),
            make_row("module:1:3", RowKind.ACTIVITY, "C", "assign"),
            make_row("module:1:4", RowKind.ACTIVITY, "D", "quiz"),
        ]
        ids = [target.id for target in build_targets(rows)]
        assert ids == [
            "all",
            "module-type:assign",
            "module-type:quiz",
            "module-type:zzz",
            "kind:section",
            "kind:label",
            "kind:content-item",
            "kind:module-url",
            "kind:module-description",
            "kind:summary",
        ]

    def test_module_type_labels(self):
        """Known types have fixed labels; others are derived from the tag."""
        assert module_type_label("assign") == "Assignments"
        assert module_type_label("zzz") == "Zzz Activities"
        assert module_type_label("lti_tool") == "Lti tool Activities"
        assert module_type_label("") == "Other Activities"

    def test_filter_by_module_type(self, sections):
        """A module-type target keeps only activities of that type."""
        rows = flatten(sections)
        targets = {target.id: target for target in build_targets(rows)}
        assert [row.id for row in filter_rows_by_target(rows, targets["module-type:assign"])] == ["module:10:100"]

    def test_filter_by_row_kind(self, sections):
        """A row-kind target keeps only rows of that kind."""
        rows = flatten(sections)
        targets = {target.id: target for target in build_targets(rows)}
        assert [row.id for row in filter_rows_by_target(rows, targets["kind:label"])] == ["label:10:101"]
        assert filter_rows_by_target(rows, ALL_TARGET) == rows

    def test_cycle_wraps(self):
        """Cycling wraps around in both directions."""
        assert cycle_target_index(0, -1, 5) == 4
        assert cycle_target_index(4, 1, 5) == 0
        assert cycle_target_index(2, 1, 5) == 3
        assert cycle_target_index(3, 1, 0) == 0


class TestMatchingResults:
    """Test that every ranked result really matches the query."""

    def test_word_starts_rank_first(self):
        """The query "db" prefers a title where the letters begin words."""
        data_structures = Course(id=1, shortname="CS-210", fullname="Data Structures and Algorithms")
        distributed = Course(id=2, shortname="CS-420", fullname="Distributed Systems")
        assert filter_courses([data_structures, distributed], "db")[0].id == 2

    def test_course_results_match(self, courses):
        """Each returned course matches the query in at least one scored field."""
        for query in ("a", "cal", "hist", "mth", "zz"):
            for course in filter_courses(courses, query):
                assert any(
                    fuzzy_score(query, getattr(course, field_name) or "") is not None
                    for field_name, _ in COURSE_FIELD_WEIGHTS
                )

    def test_row_results_match(self, sections):
        """Each returned row matches the query in its text."""
        rows = flatten(sections)
        for query in ("e", "hw", "slides", "week", "zz"):
            for row in filter_rows(rows, query):
                assert fuzzy_score(query, row.text) is not None

    def test_every_row_kind_weighted(self):
        """The row weight table covers every row kind."""
        assert set(ROW_KIND_WEIGHTS) == set(RowKind)
