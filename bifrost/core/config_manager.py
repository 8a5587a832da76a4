"""Applies a plugin's configuration fragments to existing project files.

Each ``ConfigEntry`` names a project file and a fragment published by the
plugin. Missing target files are skipped (config files are never created),
fragments that are already present are skipped, and everything else goes
through the merge engine after the operator decides how to handle it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.rule import Rule

from bifrost.config.schemas import ConfigEntry
from bifrost.core.errors import ReadError, WriteError
from bifrost.core.merge import apply_merge, classify, is_contained
from bifrost.core.prompts import Prompter
from bifrost.utils.filesystem import read_text_file, write_text_file

logger = logging.getLogger("bifrost.config")


class ContentFetcher(Protocol):
    """Anything that can fetch a plugin file by name."""

    def fetch_file(self, name: str) -> str: ...


class ConfigOutcome(str, Enum):
    """What happened to a config entry."""

    MISSING = "missing"  # target file does not exist
    PRESENT = "present"  # fragment already contained
    APPLIED = "applied"
    MANUAL = "manual"  # operator will apply it by hand
    SKIPPED = "skipped"


ACTION_CHOICES: dict[str, str] = {
    "auto": "Auto-apply changes",
    "manual": "Copy to clipboard (manual)",
    "skip": "Skip this configuration",
}


@dataclass
class ConfigResult:
    """Result of processing one config entry."""

    entry: ConfigEntry
    outcome: ConfigOutcome


class ConfigProcessor:
    """Runs the merge engine over a plugin's config entries."""

    def __init__(
        self,
        project_root: Path,
        fetcher: ContentFetcher,
        prompter: Prompter,
        console: Console | None = None,
    ):
        self.project_root = project_root
        self.fetcher = fetcher
        self.prompter = prompter
        self.console = console or Console()

    def process(self, entries: list[ConfigEntry]) -> list[ConfigResult]:
        """Process config entries in order.

        Raises:
            FetchError: If a fragment cannot be fetched
            MergeError: If a structured target cannot be parsed for merging
            WriteError: If the updated file cannot be written
        """
        return [ConfigResult(entry, self.process_entry(entry)) for entry in entries]

    def process_entry(self, entry: ConfigEntry) -> ConfigOutcome:
        """Process a single config entry."""
        target_path = self.project_root / entry.target_file

        if not target_path.exists():
            self.console.print(
                f"[yellow]Target file {entry.target_file} does not exist. Skipping...[/yellow]"
            )
            logger.info("Skipping %s: target does not exist", entry.target_file)
            return ConfigOutcome.MISSING

        fragment = self.fetcher.fetch_file(entry.config_source)
        try:
            existing = read_text_file(target_path)
        except (OSError, UnicodeDecodeError) as e:
            raise ReadError(target_path, str(e)) from e
        fmt = classify(entry.target_file)

        if is_contained(existing, fragment, fmt):
            self.console.print(
                f"[green]\u2713[/green] Configuration already exists in {entry.target_file}. "
                "Skipping..."
            )
            return ConfigOutcome.PRESENT

        self.console.print(f"\n[cyan]Configuration needed for: {entry.target_file}[/cyan]")
        self.console.print(Rule(style="dim"))
        self.console.print(fragment, markup=False, highlight=False)
        self.console.print(Rule(style="dim"))

        action = self.prompter.choose(
            f"How would you like to handle {entry.target_file}?",
            ACTION_CHOICES,
            default="auto",
        )

        if action == "skip":
            self.console.print(f"[yellow]Skipped {entry.target_file}[/yellow]")
            return ConfigOutcome.SKIPPED

        if action == "manual":
            self.console.print(
                f"[blue]Please manually add the above configuration to {entry.target_file}[/blue]"
            )
            return ConfigOutcome.MANUAL

        updated = apply_merge(existing, fragment, fmt, entry.insert_type, entry.target_file)
        if updated != existing:
            try:
                write_text_file(target_path, updated)
            except OSError as e:
                raise WriteError(target_path, str(e)) from e

        logger.debug("Applied %s fragment to %s", fmt.value, target_path)
        self.console.print(f"[green]\u2713[/green] Applied configuration to {entry.target_file}")
        return ConfigOutcome.APPLIED
