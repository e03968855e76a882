# Copyright (c) Syntropy Systems
"""Main CLI entry point for countwatch."""

import logging

import typer

from countwatch.cli.check import check
from countwatch.cli.history import history
from countwatch.cli.init_cmd import init
from countwatch.cli.server_cmd import server
from countwatch.cli.sets import sets

app = typer.Typer(
    name="countwatch",
    help=(
        "Row-count regression monitor. Compare tables against their last "
        "known-good counts and keep the history."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar="COUNTWATCH_LOG_LEVEL",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# Register commands
_ = app.command()(init)
_ = app.command()(sets)
_ = app.command()(check)
_ = app.command()(history)
_ = app.command()(server)


if __name__ == "__main__":
    app()
