"""Rich rendering and the line-based interactive shell behind `browse`."""

from datetime import datetime
from typing import Callable

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from moodleterm.dashboard import AssignmentView, Dashboard, ViewMode
from moodleterm.finder import ContentFinder, FinderOverlay
from moodleterm.moodle.course import Course, UpcomingAssignment
from moodleterm.shortcuts import Command, resolve, shortcut_sections
from moodleterm.tree import Row, RowKind, strip_html

EXPANDED_MARKER = "▾"
COLLAPSED_MARKER = "▸"


def format_timestamp(timestamp: int | None) -> str:
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%a %b %d %Y %H:%M")


def row_text(row: Row, selected: bool = False) -> Text:
    """One tree row: indentation, expand marker, icon and text."""
    marker = " "
    if row.collapsible:
        marker = EXPANDED_MARKER if row.expanded else COLLAPSED_MARKER
    text = Text("  " * row.depth + f"{marker} {row.icon} {row.text}")
    if selected:
        text.stylize("reverse")
    elif row.kind in (RowKind.ACTIVITY_DESCRIPTION, RowKind.SUMMARY):
        text.stylize("dim")
    return text


def courses_table(courses: list[Course], title: str = "Courses") -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Short name")
    table.add_column("Full name")
    table.add_column("Category")
    for course in courses:
        table.add_row(str(course.id), course.shortname, course.fullname, course.categoryname or "")
    return table


def assignments_table(assignments: list[UpcomingAssignment], selected: int | None = None) -> Table:
    table = Table(title="Upcoming assignments")
    table.add_column("Due")
    table.add_column("Assignment")
    table.add_column("Course")
    for index, assignment in enumerate(assignments):
        table.add_row(
            format_timestamp(assignment.due_date),
            assignment.name,
            assignment.course_label,
            style="reverse" if index == selected else None,
        )
    return table


def print_rows(console: Console, rows: list[Row], selected_id: str | None = None) -> None:
    for row in rows:
        console.print(row_text(row, selected=row.id == selected_id))


def render_dashboard(console: Console, dashboard: Dashboard) -> None:
    source = {"live": "live", "cache": "cached", "none": "no data"}[dashboard.data_source]
    console.rule(f"Dashboard ({len(dashboard.courses)} courses, {source})")
    if dashboard.error:
        console.print(f"[red]{escape(dashboard.error)}[/red]")
    if dashboard.upcoming:
        console.print(assignments_table(dashboard.upcoming, selected=dashboard.dashboard_index))
    else:
        console.print("No upcoming assignments.")


def render_course(console: Console, dashboard: Dashboard) -> None:
    navigation = dashboard.navigation
    course = dashboard.active_course
    console.rule(course.fullname if course is not None else "Course")
    if dashboard.course_error:
        console.print(f"[red]{escape(dashboard.course_error)}[/red]")
    selected = navigation.selected_row
    print_rows(console, navigation.window(), selected.id if selected is not None else None)
    console.print(
        f"[dim]{navigation.selected_index + 1}/{len(navigation.rows)}[/dim]",
        justify="right",
    )
    if navigation.notice:
        console.print(f"[yellow]{navigation.notice}[/yellow]")


def render_finder(console: Console, finder: FinderOverlay) -> None:
    header = finder.title
    if isinstance(finder, ContentFinder):
        header = f"{header} [{finder.target.label}]"
    console.rule(header)
    console.print(f"Query: {escape(finder.query)}")
    if not finder.results:
        console.print("[dim]No matches.[/dim]")
        return
    for offset, item in enumerate(finder.window()):
        index = finder.scroll_offset + offset
        label = row_text(item) if isinstance(item, Row) else Text(f"{item.shortname}  {item.fullname}")
        if index == finder.selected_index:
            label.stylize("reverse")
        console.print(label)


def render_assignment(console: Console, view: AssignmentView) -> None:
    console.rule(view.module.name)
    if view.error:
        console.print(f"[red]{escape(view.error)}[/red]")
    detail = view.detail
    if detail is not None:
        console.print(f"Opens:    {format_timestamp(detail.allow_submissions_from_date)}")
        console.print(f"Due:      {format_timestamp(detail.due_date)}")
        console.print(f"Cut-off:  {format_timestamp(detail.cutoff_date)}")
        if detail.max_grade is not None:
            console.print(f"Max grade: {detail.max_grade:g}")
        intro = strip_html(detail.intro)
        if intro:
            console.print(intro)
    status = view.status
    if status is not None:
        console.print(f"Submission: {status.submission_status or 'none'}")
        console.print(f"Grading:    {status.grading_status or 'unknown'}")
        if status.grade:
            console.print(f"Grade:      {strip_html(status.grade)}")
        if status.feedback:
            console.print(f"Feedback:   {strip_html(status.feedback)}")


def render_help(console: Console) -> None:
    for title, shortcuts in shortcut_sections():
        table = Table(title=title)
        table.add_column("Keys")
        table.add_column("Action")
        for shortcut in shortcuts:
            keys = ", ".join(repr(key) if key == "" else key for key in shortcut.keys)
            table.add_row(keys, shortcut.action)
        console.print(table)


def render(console: Console, dashboard: Dashboard) -> None:
    if dashboard.finder is not None:
        render_finder(console, dashboard.finder)
    elif dashboard.view is ViewMode.COURSE:
        render_course(console, dashboard)
    else:
        render_dashboard(console, dashboard)


def run_shell(
    dashboard: Dashboard,
    console: Console | None = None,
    read_line: Callable[[str], str] | None = None,
) -> None:
    """Run the interactive loop until the user quits or input ends.

    Each line is one command. While a finder is open, a line that is not a
    finder binding replaces the query.
    """
    console = console or Console()
    read_line = read_line or console.input
    dashboard.load_dashboard()

    while True:
        render(console, dashboard)
        try:
            line = read_line("> ")
        except (EOFError, KeyboardInterrupt):
            break

        if dashboard.finder is not None:
            command = resolve(line, finder_open=True)
            if command is None:
                dashboard.finder.set_query(line.strip())
            else:
                dashboard.dispatch(command)
            continue

        command = resolve(line)
        if command is Command.QUIT:
            break
        if command is Command.HELP:
            render_help(console)
        elif command is Command.OPEN_LINK:
            url = dashboard.selected_link
            if url:
                logger.info(f"Opening {url}")
                typer.launch(url)
            else:
                console.print("[yellow]Nothing to open for this selection.[/yellow]")
        elif command is Command.OPEN_ASSIGNMENT:
            view = dashboard.open_assignment()
            if view is None:
                console.print("[yellow]Select an assignment activity first.[/yellow]")
            else:
                render_assignment(console, view)
        elif command is None:
            console.print(f"Unknown command {escape(repr(line.strip()))}, type ? for help.")
        else:
            dashboard.dispatch(command)
