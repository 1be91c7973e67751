"""Shared fixtures for moodleterm tests."""

import pytest

from moodleterm.moodle.course import ContentItem, Course, CourseModule, CourseSection


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point config and cache files at a temporary directory."""
    monkeypatch.setenv("MOODLETERM_CONFIG_DIR", str(tmp_path))
    for name in ("MOODLE_BASE_URL", "MOODLE_USERNAME", "MOODLE_SERVICE", "MOODLE_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def sections():
    """Two sections: one with an assignment, a label and a resource; one empty."""
    return [
        CourseSection(
            id=10,
            name="Week 1",
            section=1,
            summary="<p>Intro &amp; overview</p>",
            modules=[
                CourseModule(
                    id=100,
                    name="Homework 1",
                    modname="assign",
                    description="<b>Due</b> Friday",
                    url="https://moodle.example.edu/mod/assign/view.php?id=100",
                    instance=7,
                ),
                CourseModule(id=101, name="Notice", modname="label", description="<p>Read this</p>"),
                CourseModule(
                    id=102,
                    name="Slides",
                    modname="resource",
                    contents=[
                        ContentItem(
                            type="file",
                            filename="slides.pdf",
                            fileurl="https://moodle.example.edu/slides.pdf",
                        )
                    ],
                ),
            ],
        ),
        CourseSection(id=11, name="", section=2, modules=[]),
    ]


@pytest.fixture
def courses():
    return [
        Course(id=1, shortname="MATH-101", fullname="Calculus I", categoryname="Mathematics"),
        Course(id=2, shortname="HIST-200", fullname="World History", categoryname="Humanities"),
    ]
