"""Prompt template renderer using Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import jinja2
import structlog

if TYPE_CHECKING:
    from ctxbundle.context.models import AggregateContext

logger = structlog.get_logger()

# Template directory is relative to this module
TEMPLATES_DIR = Path(__file__).parent / "templates"


def ensure_newline(text: str) -> str:
    """Terminate text with a newline so closing fences start a line."""
    return text if text.endswith("\n") else text + "\n"


class PromptRenderer:
    """Renders prompt templates with context.

    Example:
        >>> renderer = PromptRenderer()
        >>> content = renderer.render("context", ctx=None, query="What is my tmux prefix?")
        >>> "What is my tmux prefix?" in content
        True
    """

    def __init__(self, templates_dir: Path | None = None) -> None:
        """Initialize the renderer.

        Args:
            templates_dir: Directory containing templates.
                          Defaults to built-in templates.
        """
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.templates_dir)),
            autoescape=False,  # We're generating markdown, not HTML
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=jinja2.StrictUndefined,
        )
        self.env.filters["ensure_newline"] = ensure_newline

    def render(self, template_name: str, **context: Any) -> str:
        """Render a template with the given context.

        Args:
            template_name: Name of the template (without .md extension).
            **context: Variables to pass to the template.

        Returns:
            Rendered template content.

        Raises:
            jinja2.TemplateNotFound: If template doesn't exist.
            jinja2.UndefinedError: If required variable is missing.
        """
        log = logger.bind(template=template_name)
        log.debug("Rendering prompt template")

        template = self.env.get_template(f"{template_name}.md")
        rendered = template.render(**context)

        log.debug("Template rendered", length=len(rendered))
        return rendered


def render_context_prompt(
    ctx: AggregateContext | None,
    query: str,
    renderer: PromptRenderer | None = None,
) -> str:
    """Render an aggregate context and a user query into a flat prompt.

    Args:
        ctx: Gathered (and usually summarized) context.
        query: The user's question.
        renderer: Renderer to use (defaults to built-in templates).

    Returns:
        Markdown prompt text.
    """
    return (renderer or PromptRenderer()).render("context", ctx=ctx, query=query)
