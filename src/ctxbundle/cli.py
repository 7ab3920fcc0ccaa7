"""CLI interface for ctxbundle."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import structlog
import typer

from ctxbundle import __version__
from ctxbundle.config import BundleConfig
from ctxbundle.context.gatherer import Gatherer
from ctxbundle.context.models import GatherOptions, RepoKind
from ctxbundle.context.summarizer import ContextSummarizer, format_summary_stats
from ctxbundle.exceptions import CtxBundleError
from ctxbundle.paths import default_config_path
from ctxbundle.prompts.renderer import render_context_prompt


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog for CLI output on stderr."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


configure_logging()

logger = structlog.get_logger()

app = typer.Typer(
    name="ctxbundle",
    help="Gather multi-repository context bundles for LLM prompts",
    no_args_is_help=True,
)

repos_app = typer.Typer(
    name="repos",
    help="Manage repositories always included as context",
    no_args_is_help=True,
)

config_app = typer.Typer(
    name="config",
    help="Inspect configuration",
    no_args_is_help=True,
)

app.add_typer(repos_app)
app.add_typer(config_app)

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to config.yaml (defaults to ~/.config/ctxbundle/config.yaml)",
        resolve_path=True,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"ctxbundle version {__version__}")
        raise typer.Exit()


def _load_config(path: Path | None, *, apply_env: bool = True) -> BundleConfig:
    try:
        return BundleConfig.load_or_default(path, apply_env=apply_env)
    except CtxBundleError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging on stderr."),
    ] = False,
) -> None:
    """ctxbundle - bounded context bundles from your repositories."""
    configure_logging(verbose)


@app.command()
def gather(
    query: Annotated[
        str,
        typer.Argument(help="Question appended to the rendered prompt"),
    ] = "",
    current_repo: Annotated[
        bool,
        typer.Option(
            "--current-repo",
            "-r",
            help="Include the git repository enclosing the working directory",
        ),
    ] = False,
    budget: Annotated[
        int | None,
        typer.Option(
            "--budget",
            "-b",
            min=1,
            help="Total byte budget across repositories (overrides config)",
        ),
    ] = None,
    no_filesystem: Annotated[
        bool,
        typer.Option("--no-filesystem", help="Leave out working directory details"),
    ] = False,
    nix: Annotated[
        bool,
        typer.Option("--nix", help="Include the configured Nix configuration"),
    ] = False,
    dotfiles: Annotated[
        bool,
        typer.Option("--dotfiles", help="Include the configured dotfiles repository"),
    ] = False,
    screenshot: Annotated[
        bool,
        typer.Option("--screenshot", "-s", help="Capture a screenshot for visual context"),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the summarized context as JSON"),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Gather, summarize and print the context bundle."""
    cfg = _load_config(config)
    gatherer = Gatherer.from_config(cfg)

    options = GatherOptions(
        include_current_repo=current_repo,
        include_filesystem=not no_filesystem,
        include_nix_config=nix,
        include_dotfiles=dotfiles,
        capture_screenshot=screenshot,
        working_dir=Path.cwd(),
    )

    try:
        ctx = gatherer.gather(options)
    except CtxBundleError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    summarizer = ContextSummarizer(budget or cfg.max_context_bytes)
    summarized = summarizer.summarize_context(ctx)

    for original, reduced in zip(ctx.all_repos(), summarized.all_repos(), strict=True):
        label = original.source or str(original.path)
        stats = format_summary_stats(original.contents, reduced.contents)
        typer.echo(f"{label}: {stats}", err=True)

    if as_json:
        typer.echo(json.dumps(asdict(summarized), default=str, indent=2))
    else:
        typer.echo(render_context_prompt(summarized, query), nl=False)


@repos_app.command("add")
def repos_add(
    source: Annotated[str, typer.Argument(help="Local path or remote git URL")],
    config: ConfigOption = None,
) -> None:
    """Add a repository to always include as context."""
    path = config or default_config_path()
    cfg = _load_config(path, apply_env=False)
    try:
        descriptor = cfg.add_repo(source)
    except CtxBundleError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    cfg.save(path)
    logger.info("Repository added", source=descriptor.source, kind=descriptor.kind.value)
    typer.echo(f"Repository added: {descriptor.source} ({descriptor.kind.value})")


@repos_app.command("list")
def repos_list(config: ConfigOption = None) -> None:
    """List configured repositories."""
    cfg = _load_config(config)

    if not cfg.repos:
        typer.echo("No repositories configured.")
        typer.echo("Add a repository with: ctxbundle repos add [path-or-url]")
        return

    for i, repo in enumerate(cfg.repos, start=1):
        typer.echo(f"{i}. {repo.source} ({repo.kind.value})")
        if repo.kind == RepoKind.REMOTE and repo.cache_path is not None:
            typer.echo(f"   Cached at: {repo.cache_path}")


@repos_app.command("remove")
def repos_remove(
    source: Annotated[str, typer.Argument(help="Configured path or URL")],
    config: ConfigOption = None,
) -> None:
    """Remove a repository from the configuration."""
    path = config or default_config_path()
    cfg = _load_config(path, apply_env=False)
    try:
        descriptor = cfg.remove_repo(source)
    except CtxBundleError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    cfg.save(path)
    logger.info("Repository removed", source=descriptor.source)
    typer.echo(f"Repository removed: {descriptor.source}")


@config_app.command("show")
def config_show(config: ConfigOption = None) -> None:
    """Print the effective configuration as YAML."""
    cfg = _load_config(config)
    typer.echo(f"# {config or default_config_path()}")
    typer.echo(cfg.to_yaml(), nl=False)


if __name__ == "__main__":
    app()
