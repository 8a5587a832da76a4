"""Operator interaction used during installation.

The installer and config processor only talk to the ``Prompter`` protocol so
that runs can be driven interactively, non-interactively (``--yes``), or from
tests.
"""

from typing import Protocol

import click
import typer


class Prompter(Protocol):
    """Asks the operator questions."""

    def confirm(self, message: str, default: bool = True) -> bool: ...
    def ask(self, message: str, default: str | None = None) -> str: ...
    def choose(self, message: str, choices: dict[str, str], default: str) -> str: ...


class TyperPrompter:
    """Interactive prompter backed by typer/click prompts."""

    def confirm(self, message: str, default: bool = True) -> bool:
        return typer.confirm(message, default=default)

    def ask(self, message: str, default: str | None = None) -> str:
        value: str = typer.prompt(message, default=default)
        return value

    def choose(self, message: str, choices: dict[str, str], default: str) -> str:
        """Show numbered choices and return the selected key.

        Args:
            message: Question to ask
            choices: Mapping of value -> label, in display order
            default: Value selected when the operator just presses enter
        """
        keys = list(choices)
        for index, key in enumerate(keys, start=1):
            typer.echo(f"  {index}) {choices[key]}")
        selection: int = typer.prompt(
            message,
            default=keys.index(default) + 1,
            type=click.IntRange(1, len(keys)),
        )
        return keys[selection - 1]


class AutoPrompter:
    """Non-interactive prompter that accepts every default."""

    def confirm(self, message: str, default: bool = True) -> bool:
        return default

    def ask(self, message: str, default: str | None = None) -> str:
        return default or ""

    def choose(self, message: str, choices: dict[str, str], default: str) -> str:
        return default
