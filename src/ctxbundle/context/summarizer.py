"""Context summarizer with byte budget management."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

import structlog

from ctxbundle.context.models import AggregateContext, FileRecord, RepoContents
from ctxbundle.context.scoring import DEFAULT_RULES, ScoreRule, prioritize_files

TRUNCATION_MARKER = "\n\n... [truncated] ...\n"
TOO_LARGE_PLACEHOLDER = "[file too large to include]"

# A boundary file is only truncated when at least this much budget is left
MIN_TRUNCATION_BYTES = 500

# Rough estimate: ~4 bytes per token
BYTES_PER_TOKEN = 4


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def truncate_file(record: FileRecord, max_size: int) -> FileRecord:
    """Cut a file down to at most ``max_size`` bytes.

    Keeps a prefix of the content and appends ``TRUNCATION_MARKER``. The cut
    lands on a UTF-8 character boundary. When there is no room for the
    marker the content is replaced by ``TOO_LARGE_PLACEHOLDER``.

    Args:
        record: File to truncate.
        max_size: Byte budget for the truncated file.

    Returns:
        A new FileRecord (or the original if it already fits).
    """
    if record.size <= max_size:
        return record

    available = max_size - _byte_len(TRUNCATION_MARKER)
    if available <= 0:
        return replace(
            record,
            content=TOO_LARGE_PLACEHOLDER,
            size=_byte_len(TOO_LARGE_PLACEHOLDER),
        )

    prefix = record.content.encode("utf-8")[:available].decode("utf-8", errors="ignore")
    content = prefix + TRUNCATION_MARKER
    return replace(record, content=content, size=_byte_len(content))


def estimate_tokens(contents: RepoContents | None) -> int:
    """Rough token count for repository contents."""
    if contents is None:
        return 0
    return contents.total_size // BYTES_PER_TOKEN


def format_summary_stats(
    original: RepoContents | None,
    summarized: RepoContents | None,
) -> str:
    """Human-readable summary of what was included.

    Example:
        >>> format_summary_stats(original, summarized)
        '3/10 files (4000/90000 bytes, ~1000 tokens) - summarized'
    """
    if original is None:
        return "No content"
    if summarized is None or original.total_size == summarized.total_size:
        return (
            f"{original.total_files} files "
            f"({original.total_size} bytes, ~{estimate_tokens(original)} tokens)"
        )
    return (
        f"{len(summarized.files)}/{original.total_files} files "
        f"({summarized.total_size}/{original.total_size} bytes, "
        f"~{estimate_tokens(summarized)} tokens) - summarized"
    )


@dataclass
class ContextSummarizer:
    """Fits gathered context into a byte budget.

    Files are ranked with the scoring rules. Whole files are included in
    rank order until the next one would overflow the budget; that boundary
    file is truncated into the remaining space (if at least
    ``MIN_TRUNCATION_BYTES`` remain) and nothing after it is considered.

    Attributes:
        max_context_size: Byte budget.
        rules: Scoring rules used for ranking.
    """

    max_context_size: int
    rules: Sequence[ScoreRule] = DEFAULT_RULES
    logger: structlog.BoundLogger | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = structlog.get_logger()

    def summarize_repo_contents(self, contents: RepoContents | None) -> RepoContents | None:
        """Reduce repository contents to the budget.

        Contents already within budget are returned unchanged (same object).
        The input is never mutated.

        Args:
            contents: Contents to summarize.

        Returns:
            Contents whose total_size does not exceed max_context_size.
            ``total_files`` keeps the original count.
        """
        if contents is None or contents.total_size <= self.max_context_size:
            return contents

        summarized = RepoContents(total_files=contents.total_files)

        for record in prioritize_files(contents.files, self.rules):
            if summarized.total_size + record.size > self.max_context_size:
                remaining = self.max_context_size - summarized.total_size
                if remaining >= MIN_TRUNCATION_BYTES:
                    truncated = truncate_file(record, remaining)
                    summarized.files.append(truncated)
                    summarized.total_size += truncated.size
                break

            summarized.files.append(record)
            summarized.total_size += record.size

        self.logger.debug(
            "Repository contents summarized",
            included_files=len(summarized.files),
            total_files=contents.total_files,
            bytes=summarized.total_size,
            original_bytes=contents.total_size,
            budget=self.max_context_size,
        )
        return summarized

    def summarize_context(self, ctx: AggregateContext | None) -> AggregateContext | None:
        """Apply the budget across every repository in an aggregate.

        Each repository gets ``max_context_size // repo_count`` bytes. Up to
        ``repo_count - 1`` bytes of the budget may go unused. Filesystem,
        Nix, dotfiles and screenshot context pass through unchanged.

        Args:
            ctx: Aggregate context to summarize.

        Returns:
            A new AggregateContext; the input is not mutated.
        """
        if ctx is None:
            return None

        total_repos = ctx.repo_count
        if total_repos == 0:
            return replace(ctx, configured_repos=[])

        per_repo = ContextSummarizer(
            self.max_context_size // total_repos,
            rules=self.rules,
            logger=self.logger,
        )

        configured = [
            replace(repo, contents=per_repo.summarize_repo_contents(repo.contents))
            for repo in ctx.configured_repos
        ]
        current = None
        if ctx.current_repo is not None:
            current = replace(
                ctx.current_repo,
                contents=per_repo.summarize_repo_contents(ctx.current_repo.contents),
            )

        self.logger.debug(
            "Context summarized",
            repos=total_repos,
            budget=self.max_context_size,
            per_repo_budget=per_repo.max_context_size,
        )
        return replace(ctx, configured_repos=configured, current_repo=current)
