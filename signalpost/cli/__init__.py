"""signalpost CLI — Typer-based command-line interface.

Provides the ``signalpost`` command with subcommands for running a
handler through its destinations, draining persistent queues, running a
demo and showing the effective configuration.

All output uses Rich for formatted terminal display.
"""
