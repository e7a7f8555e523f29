"""Harborline CLI — Typer-based command-line interface.

Provides the ``harborline`` command with one subcommand per pipeline
operation (``build-env``, ``build``, ``test``, ``publish``, ``develop``,
``develop-issue``) plus ``operations`` to list the registry.

All output uses Rich for formatted terminal display.
"""
