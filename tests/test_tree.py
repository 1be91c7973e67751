#!/usr/bin/env python
"""Tests for tree module."""

from moodleterm.moodle.course import ContentItem, CourseModule, CourseSection
from moodleterm.tree import (
    EMPTY_COURSE_TEXT,
    EMPTY_LABEL_TEXT,
    RowKind,
    default_collapsed_ids,
    find_module_for_row,
    flatten,
    module_icon,
    strip_html,
)


class TestStripHtml:
    """Test HTML reduction to plain text."""

    def test_empty(self):
        """None and empty strings give an empty string."""
        assert strip_html(None) == ""
        assert strip_html("") == ""

    def test_tags_and_entities(self):
        """Tags are dropped and entities decoded."""
        assert strip_html("<p>Intro &amp; overview</p>") == "Intro & overview"

    def test_whitespace_collapses(self):
        """Runs of whitespace become one space."""
        assert strip_html("  a \n\t b  ") == "a b"

    def test_decoded_markup_is_stripped(self):
        """Escaped tags are removed after decoding."""
        assert strip_html("a &lt;b&gt; c") == "a c"


class TestFlatten:
    """Test flattening course contents into rows."""

    def test_empty_course(self):
        """No sections gives a single placeholder row."""
        rows = flatten([])
        assert len(rows) == 1
        assert rows[0].kind is RowKind.EMPTY_PLACEHOLDER
        assert rows[0].text == EMPTY_COURSE_TEXT

    def test_fully_expanded_order(self, sections):
        """Every row appears in display order when nothing is collapsed."""
        rows = flatten(sections)
        assert [row.id for row in rows] == [
            "section:10",
            "summary:10",
            "module:10:100",
            "module-description:10:100",
            "module-url:10:100",
            "label:10:101",
            "module:10:102",
            "content:10:102:0",
            "section:11",
            "section-empty:11",
        ]

    def test_row_details(self, sections):
        """Check text, depth and parent of each kind of row."""
        rows = {row.id: row for row in flatten(sections)}
        assert rows["section:10"].depth == 0
        assert rows["section:10"].expanded
        assert rows["summary:10"].text == "Intro & overview"
        assert rows["module:10:100"].parent_id == "section:10"
        assert rows["module:10:100"].module_type == "assign"
        assert rows["module:10:100"].link_url == "https://moodle.example.edu/mod/assign/view.php?id=100"
        assert rows["module-description:10:100"].text == "Due Friday"
        assert rows["module-description:10:100"].depth == 2
        assert rows["label:10:101"].text == "Read this"
        assert not rows["label:10:101"].collapsible
        assert rows["content:10:102:0"].text == "slides.pdf: https://moodle.example.edu/slides.pdf"
        assert rows["content:10:102:0"].parent_id == "module:10:102"
        assert rows["section:11"].text == "Section 2"
        assert rows["section-empty:11"].kind is RowKind.SUMMARY

    def test_collapsed_section_hides_children(self, sections):
        """A collapsed section shows only its own row."""
        rows = flatten(sections, {"section:10"})
        assert [row.id for row in rows] == ["section:10", "section:11", "section-empty:11"]
        assert not rows[0].expanded

    def test_collapsed_module_hides_children(self, sections):
        """A collapsed activity hides its description, link and files."""
        ids = [row.id for row in flatten(sections, frozenset({"module:10:100"}))]
        assert "module:10:100" in ids
        assert "module-description:10:100" not in ids
        assert "module-url:10:100" not in ids
        assert "content:10:102:0" in ids

    def test_label_never_has_children(self):
        """A label with a description, URL and files still yields a single row."""
        label = CourseModule(
            id=2,
            name="Notice",
            modname="label",
            description="<p>Read this</p>",
            url="https://moodle.example.edu/mod/label/view.php?id=2",
            contents=[ContentItem(type="file", filename="a.pdf", fileurl="https://moodle.example.edu/a.pdf")],
        )
        rows = flatten([CourseSection(id=1, modules=[label])])
        assert [row.id for row in rows] == ["section:1", "label:1:2"]

    def test_forum_with_file(self):
        """An expanded forum shows its description and file under it."""
        forum = CourseModule(
            id=55,
            name="Discussion",
            modname="forum",
            description="Weekly questions",
            contents=[ContentItem(type="file", filename="guide.pdf")],
        )
        rows = flatten([CourseSection(id=10, name="Week 1", modules=[forum])])
        assert [row.id for row in rows] == [
            "section:10",
            "module:10:55",
            "module-description:10:55",
            "content:10:55:0",
        ]
        assert rows[1].expanded
        assert rows[3].text.endswith("guide.pdf")

    def test_collapsed_section_alone(self):
        """A single collapsed section yields exactly its own row."""
        rows = flatten([CourseSection(id=10, name="Week 1")], {"section:10"})
        assert [row.id for row in rows] == ["section:10"]
        assert not rows[0].expanded

    def test_same_input_same_rows(self, sections):
        """Flattening twice gives equal rows."""
        collapsed = {"module:10:102"}
        assert flatten(sections, collapsed) == flatten(sections, collapsed)
        assert flatten(sections) == flatten(sections)

    def test_parents_always_present(self, sections):
        """Every emitted row's parent is emitted too, whatever is collapsed."""
        for collapsed in (
            frozenset(),
            default_collapsed_ids(sections),
            {"module:10:100"},
            {"section:10"},
            {"section:11", "module:10:102"},
        ):
            rows = flatten(sections, collapsed)
            ids = {row.id for row in rows}
            assert all(row.parent_id is None or row.parent_id in ids for row in rows)

    def test_empty_label_text(self):
        """A label without any text gets a placeholder."""
        section = CourseSection(id=1, modules=[CourseModule(id=2, name="", modname="label")])
        label = flatten([section])[1]
        assert label.kind is RowKind.LABEL
        assert label.text == EMPTY_LABEL_TEXT

    def test_unknown_module_icon(self):
        """Unknown activity types fall back to a generic icon."""
        assert module_icon("assign") == "✅"
        assert module_icon("ASSIGN ") == "✅"
        assert module_icon("h5pactivity") == "📦"


class TestDefaultCollapse:
    """Test the collapse set applied when a course is opened."""

    def test_sections_and_activities_collapsed(self, sections):
        """Every section and every non-label activity starts collapsed."""
        assert default_collapsed_ids(sections) == frozenset(
            {"section:10", "module:10:100", "module:10:102", "section:11"}
        )

    def test_only_sections_visible(self, sections):
        """With the default set, only section rows are shown."""
        rows = flatten(sections, default_collapsed_ids(sections))
        assert [row.id for row in rows] == ["section:10", "section:11"]


class TestFindModuleForRow:
    """Test mapping activity rows back to activities."""

    def test_activity_row(self, sections):
        """An activity row maps to its module."""
        row = next(row for row in flatten(sections) if row.id == "module:10:100")
        assert find_module_for_row(sections, row).name == "Homework 1"

    def test_other_rows(self, sections):
        """Non-activity rows and None map to nothing."""
        rows = {row.id: row for row in flatten(sections)}
        assert find_module_for_row(sections, rows["label:10:101"]) is None
        assert find_module_for_row(sections, rows["section:10"]) is None
        assert find_module_for_row(sections, None) is None
