"""Context bundle - repository gathering, filtering and budgeting.

Key components:
- ContentReader: Walks a repository and keeps text "signal" files
- RepoFetcher: Resolves local paths and caches remote mirrors
- ContextSummarizer: Ranks files and fits them into a byte budget
- Gatherer: Main entry point that coordinates everything above
"""

from ctxbundle.context.fetcher import RepoFetcher
from ctxbundle.context.gatherer import Gatherer
from ctxbundle.context.models import (
    AggregateContext,
    FileRecord,
    GatherOptions,
    RepoContents,
    RepoKind,
    RepositoryContext,
)
from ctxbundle.context.reader import ContentReader
from ctxbundle.context.summarizer import ContextSummarizer

__all__ = [
    "AggregateContext",
    "ContentReader",
    "ContextSummarizer",
    "FileRecord",
    "Gatherer",
    "GatherOptions",
    "RepoContents",
    "RepoFetcher",
    "RepoKind",
    "RepositoryContext",
]
