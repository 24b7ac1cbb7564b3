"""Main Typer application — imports and registers all CLI commands.

Entry point: ``signalpost`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer

from signalpost.cli.commands.config_cmd import config_cmd
from signalpost.cli.commands.demo import demo_cmd
from signalpost.cli.commands.drain import drain_cmd
from signalpost.cli.commands.invoke import invoke_cmd
from signalpost.config import config

app = typer.Typer(
    name="signalpost",
    help="signalpost: success/failure destination routing for function invocations.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level,
        "--log-level",
        help="Logging level (overrides SIGNALPOST_LOG_LEVEL).",
    ),
) -> None:
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
app.command(name="invoke", help="Invoke a handler and route its outcome.")(invoke_cmd)
app.command(name="drain", help="Drain envelopes from a SQLite queue destination.")(drain_cmd)
app.command(name="demo", help="Route sample invocations through in-memory sinks.")(demo_cmd)
app.command(name="config", help="Show effective settings.")(config_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
