"""Jinja2 template engine wrapper for Bifrost scaffolding."""

from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)

TEMPLATES_DIR = Path(__file__).parent / "templates"


class TemplateRenderError(Exception):
    """Error rendering a template."""

    def __init__(self, message: str, source: str | None = None, line: int | None = None):
        self.source = source
        self.line = line
        super().__init__(message)


def code(value: str) -> str:
    """Wrap a value in markdown inline-code backticks."""
    return f"`{value}`"


class TemplateEngine:
    """Renders the scaffold templates shipped with Bifrost."""

    def __init__(self, base_path: Path = TEMPLATES_DIR) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(base_path)),
            autoescape=False,  # Markdown and JSON, no HTML escaping
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._env.filters["code"] = code

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a named template.

        Raises:
            TemplateRenderError: If the template is missing or fails to render
        """
        try:
            return self._env.get_template(name).render(context)
        except TemplateNotFound as e:
            raise TemplateRenderError(f"Template not found: {name}", source=name) from e
        except TemplateSyntaxError as e:
            raise TemplateRenderError(
                f"Template syntax error: {e.message}",
                source=name,
                line=e.lineno,
            ) from e
        except UndefinedError as e:
            raise TemplateRenderError(f"Undefined variable in template: {e}", source=name) from e
        except TemplateError as e:
            raise TemplateRenderError(f"Template error: {e}", source=name) from e


_engine: TemplateEngine | None = None


def get_engine() -> TemplateEngine:
    """Get the shared template engine instance."""
    global _engine
    if _engine is None:
        _engine = TemplateEngine()
    return _engine


def render(name: str, context: dict[str, Any]) -> str:
    """Render a named template using the shared engine."""
    return get_engine().render(name, context)
