"""Top-level package for moodleterm."""

__author__ = """Matthew Leingang"""
__email__ = 'leingang@nyu.edu'

import sys
from typing import Annotated

import typer
from loguru import logger

app = typer.Typer()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    """Browse Moodle courses from the terminal."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


# Import submodules at the end to register their commands
from moodleterm import (  # noqa: E402
    moodle,  # noqa: F401
)

if __name__ == "__main__":
    app()
