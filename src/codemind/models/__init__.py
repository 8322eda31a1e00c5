from __future__ import annotations

from codemind.models.ai import (
    AnalyzeInput,
    BlueprintInput,
    ChatTurn,
    ContextFile,
    ModelResponse,
    RelatedLink,
    ThinkInput,
)
from codemind.models.github import (
    ContentQuery,
    FileEntry,
    RepoInfo,
    RepoOwner,
    TreeData,
    TreeQuery,
)

__all__ = [
    # github
    "FileEntry",
    "TreeData",
    "RepoInfo",
    "RepoOwner",
    "TreeQuery",
    "ContentQuery",
    # ai
    "ContextFile",
    "ChatTurn",
    "RelatedLink",
    "AnalyzeInput",
    "ThinkInput",
    "BlueprintInput",
    "ModelResponse",
]
