"""wdkforge CLI — Typer-based command-line interface.

Provides the ``wdkforge`` command with subcommands for scaffolding a new
driver project and for building and packaging driver projects.

All output uses Rich for formatted terminal display.
"""
