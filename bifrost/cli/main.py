"""Main CLI application for Bifrost."""

import logging
from pathlib import Path
from typing import Annotated

import click
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from typer.core import TyperGroup

from bifrost import __version__
from bifrost.config.parser import ConfigError, load_plugin_manifest
from bifrost.config.schemas import PLATFORM_CHOICES
from bifrost.core.creator import (
    PluginScaffold,
    ScaffoldError,
    create_plugin,
    manual_push_steps,
    push_to_github,
    split_list,
)
from bifrost.core.errors import InstallError
from bifrost.core.installer import PluginInstaller
from bifrost.core.merge import MergeError
from bifrost.core.package_manager import DependencyManagerError
from bifrost.core.project import Project
from bifrost.core.prompts import AutoPrompter, Prompter, TyperPrompter
from bifrost.core.submitter import SubmitError, submit_plugin
from bifrost.registry.github import FetchError, GitHubSource
from bifrost.registry.index import (
    compatible_plugins,
    find_plugin,
    load_registry,
    validate_platform_compatibility,
)

# Errors that end a command with a message instead of a traceback
FATAL_ERRORS = (
    ConfigError,
    DependencyManagerError,
    FetchError,
    InstallError,
    MergeError,
    ScaffoldError,
    SubmitError,
)


class DefaultInstallGroup(TyperGroup):
    """Routes ``bifrost <plugin-name>`` to the install command."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        for index, arg in enumerate(args):
            if arg.startswith("-"):
                continue
            if arg not in self.commands:
                args = [*args[:index], "install", *args[index:]]
            break
        return super().parse_args(ctx, args)


app = typer.Typer(
    name="bifrost",
    help="Plugin installer for bifrost projects",
    cls=DefaultInstallGroup,
    add_completion=False,
    invoke_without_command=True,
    no_args_is_help=False,
)

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger("bifrost")


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2=DEBUG, 3+=DEBUG with source paths
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]\u2713[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]\u26a0[/yellow] {message}")


def get_project(path: Path | None = None) -> Project:
    """Get the current project, exiting if there is none."""
    try:
        return Project.load(path)
    except FileNotFoundError as e:
        print_error(str(e))
        console.print("[yellow]Make sure you are in a bifrost project directory[/yellow]")
        raise typer.Exit(1) from e
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e


def get_prompter(yes: bool) -> Prompter:
    return AutoPrompter() if yes else TyperPrompter()


def install_plugin(
    plugin_name: str,
    project: Project,
    prompter: Prompter,
    registry: str | None = None,
) -> None:
    """Look a plugin up and install it, exiting on failure.

    ``plugin_name`` is either a registry name or a GitHub ``owner/repo``
    coordinate, which bypasses the registry.
    """
    try:
        if "/" in plugin_name:
            github = plugin_name
        else:
            entries = load_registry(registry or project.config.registry)
            plugin = find_plugin(entries, plugin_name)
            if plugin is None:
                print_error(f'Plugin "{plugin_name}" not found in registry')
                raise typer.Exit(1)
            if not validate_platform_compatibility(project.platform, plugin.platform):
                print_error(
                    f"Plugin is for {plugin.platform}, but your project is {project.platform}"
                )
                raise typer.Exit(1)
            github = plugin.github

        console.print(f"[blue]Installing {plugin_name}...[/blue]")
        installer = PluginInstaller(project, GitHubSource(github), prompter, console=console)
        result = installer.install()
    except FATAL_ERRORS as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    print_success("Plugin installed successfully!")
    for path in result.installed_files:
        console.print(f"  Created: {path.relative_to(project.root)}")
    if result.installed_libraries:
        console.print(f"  Dependencies: {', '.join(result.installed_libraries)}")


@app.callback()
def callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug, -vvv trace)",
        ),
    ] = 0,
) -> None:
    """Bifrost - install, create and publish plugins for bifrost projects.

    Run without arguments for an interactive menu, or pass a plugin name to
    install it: bifrost <plugin-name>
    """
    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        interactive_mode()


def interactive_mode() -> None:
    """Menu shown when bifrost runs without arguments."""
    console.print("\n[bold blue]bifrost Plugin Manager[/bold blue]\n")
    action = TyperPrompter().choose(
        "What would you like to do?",
        {
            "list": "List available plugins to install",
            "create": "Plugin wizard (create your own plugin)",
            "submit": "Submit plugin to registry",
        },
        default="list",
    )

    if action == "list":
        list_plugins()
    elif action == "create":
        create()
    elif action == "submit":
        submit()


@app.command()
def version() -> None:
    """Show the Bifrost version."""
    console.print(f"bifrost {__version__}")


@app.command()
def install(
    plugin: Annotated[
        str,
        typer.Argument(help="Plugin name from the registry, or a GitHub owner/repo"),
    ],
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Accept default install locations and auto-apply configuration",
        ),
    ] = False,
    registry: Annotated[
        str | None,
        typer.Option(
            "--registry",
            "-r",
            help="Registry to use (https:// URL or local registry.bifrost path)",
        ),
    ] = None,
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Project directory",
        ),
    ] = None,
) -> None:
    """Install a plugin into the current project.

    Files are written first, then configuration is merged, then dependencies
    are added. If anything fails, written files and added dependencies are
    removed again.
    """
    project = get_project(path)
    install_plugin(plugin, project, get_prompter(yes), registry)


@app.command("list")
def list_plugins(
    registry: Annotated[
        str | None,
        typer.Option(
            "--registry",
            "-r",
            help="Registry to use (https:// URL or local registry.bifrost path)",
        ),
    ] = None,
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Project directory",
        ),
    ] = None,
) -> None:
    """List plugins available for this project and pick one to install."""
    project = get_project(path)

    try:
        entries = load_registry(registry or project.config.registry)
    except (FetchError, ConfigError) as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    available = compatible_plugins(entries, project.platform)
    if not available:
        print_warning(f"No plugins available for platform: {project.platform}")
        return

    table = Table(title=f"Plugins for {project.platform}")
    table.add_column("Plugin", style="cyan")
    table.add_column("Description")
    table.add_column("Tags", style="dim")
    for entry in available:
        table.add_row(entry.name, entry.description, ", ".join(entry.tags))
    console.print(table)

    choices = {entry.name: f"{entry.name} - {entry.description}" for entry in available}
    choices[""] = "Cancel"
    prompter = TyperPrompter()
    selected = prompter.choose("Select a plugin to install", choices, default="")
    if not selected:
        console.print("[yellow]Installation cancelled[/yellow]")
        return

    install_plugin(selected, project, prompter, registry)


@app.command()
def create(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Directory to create the plugin in (defaults to current directory)",
        ),
    ] = None,
) -> None:
    """Create a new bifrost plugin."""
    parent = Path.cwd() if path is None else path.resolve()
    prompter = TyperPrompter()

    console.print("\n[bold blue]Bifrost Plugin Creator[/bold blue]\n")
    name = prompter.ask("Plugin name").strip()
    if not name:
        console.print("[yellow]Plugin creation cancelled[/yellow]")
        return

    platform = prompter.choose("Select platform", PLATFORM_CHOICES, default="remix")
    description = prompter.ask("Description").strip()
    tags = split_list(prompter.ask("Tags (comma-separated)", default=""))

    libraries: list[str] = []
    if prompter.confirm("Would you like to supply required libraries now?", default=False):
        console.print("[dim]Format: @remix-run/react, remix-auth, react[/dim]")
        libraries = split_list(prompter.ask("Libraries", default=""))

    username = prompter.ask("GitHub username").strip()
    if not username:
        console.print("[yellow]Plugin creation cancelled[/yellow]")
        return

    push = prompter.confirm("Auto-create and push to GitHub?", default=True)

    scaffold = PluginScaffold(
        name=name,
        platform=platform,
        description=description,
        github_username=username,
        tags=tags,
        libraries=libraries,
    )

    try:
        plugin_dir = create_plugin(parent, scaffold)
    except ScaffoldError as e:
        print_error(str(e))
        raise typer.Exit(1) from e
    print_success("Plugin structure created")

    if push and push_to_github(plugin_dir, name):
        print_success("GitHub repository created and pushed")
        console.print(f"  Repository: https://github.com/{scaffold.github}")
    else:
        if push:
            print_warning("Could not auto-create GitHub repository")
        console.print("[blue]Manual GitHub setup:[/blue]")
        for step in manual_push_steps(name):
            console.print(f"  [dim]{step}[/dim]")

    console.print("\n[bold green]Plugin created successfully![/bold green]\n")
    console.print("[cyan]Next steps:[/cyan]")
    console.print(f"  1. Add your plugin files to {name}/files/")
    console.print("  2. Update plugin.bifrost with file mappings")
    console.print("  3. Submit to registry: bifrost submit")


@app.command()
def submit(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Plugin directory (defaults to current directory)",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Submit without asking for confirmation"),
    ] = False,
) -> None:
    """Submit your plugin to the registry."""
    plugin_dir = Path.cwd() if path is None else path.resolve()

    try:
        manifest = load_plugin_manifest(plugin_dir)
    except ConfigError as e:
        print_error(str(e))
        console.print("[yellow]Make sure you are in your plugin directory[/yellow]")
        raise typer.Exit(1) from e

    table = Table(title="Plugin Information", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Name", manifest.name or "")
    table.add_row("Description", manifest.description or "")
    table.add_row("Platform", manifest.platform)
    table.add_row("GitHub", manifest.github or "")
    table.add_row("Tags", ", ".join(manifest.tags))
    table.add_row("Libraries", ", ".join(manifest.libraries))
    console.print(table)

    if not get_prompter(yes).confirm("Submit this plugin to the registry?", default=True):
        console.print("[yellow]Submission cancelled[/yellow]")
        return

    try:
        pr_url = submit_plugin(plugin_dir)
    except SubmitError as e:
        print_error(str(e))
        if e.manual_steps:
            console.print("[yellow]Manual submission steps:[/yellow]")
            for number, step in enumerate(e.manual_steps, start=1):
                console.print(f"  {number}. {step}")
        raise typer.Exit(1) from e

    console.print("\n[bold green]Plugin submitted successfully![/bold green]\n")
    console.print(f"[cyan]Pull Request:[/cyan] {pr_url}")
    console.print("[dim]Your plugin will be available once the PR is merged.[/dim]")


if __name__ == "__main__":
    app()
