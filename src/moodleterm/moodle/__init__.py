from typing import Annotated

import typer
from loguru import logger
from rich.console import Console

from moodleterm import app as main_app
from moodleterm import cache
from moodleterm.config import RuntimeConfig, SavedConfig, clear_config, env_password, load_config, save_config
from moodleterm.dashboard import Dashboard
from moodleterm.moodle.course import Course
from moodleterm.search import build_targets, filter_courses, filter_rows, filter_rows_by_target
from moodleterm.secret import clear_password, load_password, save_password, storage_diagnostic
from moodleterm.shell import assignments_table, courses_table, print_rows, run_shell
from moodleterm.tree import flatten

from .client import DEFAULT_SERVICE, MoodleClient, MoodleError, check_credentials, normalize_base_url

# Create moodle subcommands app
app = typer.Typer(help="Moodle web service commands")

console = Console()


def _runtime_config() -> RuntimeConfig:
    saved = load_config()
    if saved is None:
        typer.echo("Not logged in. Run `moodleterm moodle login` first.", err=True)
        raise typer.Exit(code=1)
    password = env_password() or load_password(saved)
    if not password:
        password = typer.prompt(f"Moodle password for {saved.username}", hide_input=True)
    return RuntimeConfig.from_saved(saved, password)


def _client() -> MoodleClient:
    config = _runtime_config()
    return MoodleClient(
        base_url=config.base_url,
        username=config.username,
        password=config.password,
        service=config.service,
    )


def _courses(client: MoodleClient, refresh: bool) -> list[Course]:
    if not refresh:
        cached = cache.get_cached_courses()
        if cached is not None:
            return cached
    courses = client.fetch_courses()
    cache.save_courses(courses)
    return courses


def _resolve_course(courses: list[Course], course: str) -> Course:
    """Find a course by numeric id or, failing that, by best fuzzy match."""
    if course.strip().isdigit():
        for candidate in courses:
            if candidate.id == int(course):
                return candidate
    matches = filter_courses(courses, course)
    if not matches:
        raise typer.BadParameter(f"No enrolled course matches {course!r}")
    return matches[0]


@app.command()
def login(
    base_url: Annotated[str, typer.Option(prompt="Moodle site URL", help="Moodle site URL")],
    username: Annotated[str, typer.Option(prompt=True, help="Moodle username")],
    password: Annotated[
        str,
        typer.Option(prompt=True, hide_input=True, envvar="MOODLE_PASSWORD", help="Moodle password"),
    ],
    service: Annotated[
        str, typer.Option(help="Web service short name used for token requests")
    ] = DEFAULT_SERVICE,
    remember: Annotated[
        bool, typer.Option("--remember/--no-remember", help="Store the password in the system keyring")
    ] = True,
) -> None:
    """Check credentials against a Moodle site and save the connection settings."""
    if not base_url.strip().lower().startswith(("http://", "https://")):
        raise typer.BadParameter("Site URL must start with http:// or https://")

    ok, message = check_credentials(base_url, username, password, service=service)
    if not ok:
        typer.echo(f"Login failed: {message}", err=True)
        raise typer.Exit(code=1)

    saved = SavedConfig(
        base_url=normalize_base_url(base_url),
        username=username.strip(),
        service=service.strip() or DEFAULT_SERVICE,
    )
    path = save_config(saved)
    logger.success(f"Logged in as {username}; settings saved to {path}")

    if remember:
        available, reason = storage_diagnostic()
        if not available:
            logger.warning(reason)
        elif save_password(saved, password):
            logger.info("Password stored in the system keyring")


@app.command()
def logout() -> None:
    """Forget the saved settings, stored password and cached data."""
    saved = load_config()
    if saved is not None:
        clear_password(saved)
    clear_config()
    cache.clear_cache()
    logger.success("Logged out")


@app.command()
def courses(
    query: Annotated[str | None, typer.Argument(help="Fuzzy filter on course names")] = None,
    refresh: Annotated[bool, typer.Option(help="Ignore cached data")] = False,
) -> None:
    """List enrolled courses, best matches first when a query is given."""
    try:
        all_courses = _courses(_client(), refresh)
    except MoodleError as e:
        typer.echo(f"Could not list courses: {e}", err=True)
        raise typer.Exit(code=1)
    console.print(courses_table(filter_courses(all_courses, query or "")))


@app.command()
def assignments() -> None:
    """Show assignments due from now on, soonest first."""
    dashboard = Dashboard(_client())
    dashboard.load_dashboard(force_refresh=True)
    if dashboard.error:
        typer.echo(f"Could not load assignments: {dashboard.error}", err=True)
        raise typer.Exit(code=1)
    console.print(assignments_table(dashboard.upcoming))


@app.command()
def contents(
    course: Annotated[str, typer.Argument(help="Course id or a fuzzy course name")],
    refresh: Annotated[bool, typer.Option(help="Ignore cached course data")] = False,
) -> None:
    """Print the full content tree of a course."""
    client = _client()
    try:
        chosen = _resolve_course(_courses(client, refresh), course)
        sections = None if refresh else cache.get_cached_course_sections(chosen.id)
        if sections is None:
            sections = client.fetch_course_contents(chosen.id)
            cache.save_course_sections(chosen.id, sections)
    except MoodleError as e:
        typer.echo(f"Could not load course contents: {e}", err=True)
        raise typer.Exit(code=1)
    console.rule(chosen.fullname)
    print_rows(console, flatten(sections))


@app.command()
def find(
    course: Annotated[str, typer.Argument(help="Course id or a fuzzy course name")],
    query: Annotated[str, typer.Argument(help="Fuzzy query over the course contents")],
    target: Annotated[
        str,
        typer.Option(help="Restrict the search, e.g. 'module-type:assign' or 'kind:label'"),
    ] = "all",
    limit: Annotated[int, typer.Option(help="Maximum number of results")] = 20,
) -> None:
    """Search the contents of a course."""
    client = _client()
    try:
        chosen = _resolve_course(_courses(client, refresh=False), course)
        sections = client.fetch_course_contents(chosen.id)
    except MoodleError as e:
        typer.echo(f"Could not load course contents: {e}", err=True)
        raise typer.Exit(code=1)
    cache.save_course_sections(chosen.id, sections)

    rows = flatten(sections)
    targets = {candidate.id: candidate for candidate in build_targets(rows)}
    if target not in targets:
        raise typer.BadParameter(f"Unknown target {target!r}; choose from {', '.join(targets)}")
    results = filter_rows(filter_rows_by_target(rows, targets[target]), query)
    if not results:
        typer.echo("No matches.")
        return
    print_rows(console, results[:limit])


@app.command()
def browse(
    rows: Annotated[int, typer.Option(help="Number of course rows shown at once")] = 20,
) -> None:
    """Browse the dashboard and course pages interactively."""
    run_shell(Dashboard(_client(), visible_rows=rows), console=console)


# Register the moodle app as a subcommand with the main app
main_app.add_typer(app, name="moodle")
