from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def _validate_name(v: str, field: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{field} must not be empty")
    if not _NAME_RE.match(v):
        raise ValueError(f"Invalid {field}: {v!r}")
    return v


class FileEntry(BaseModel):
    """Single node of a recursive git tree listing."""

    model_config = ConfigDict(extra="allow")

    path: str
    mode: str
    type: Literal["blob", "tree", "commit"]
    sha: str
    size: int | None = None
    url: str | None = None  # submodule entries carry no url


class TreeData(BaseModel):
    """Recursive tree listing plus the branch it was resolved against."""

    model_config = ConfigDict(extra="allow")

    sha: str
    url: str
    tree: list[FileEntry]
    truncated: bool = False
    branch: str


class RepoOwner(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str
    avatar_url: str = ""


class RepoInfo(BaseModel):
    """Subset of the GitHub repository object returned by /user/repos."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    full_name: str
    private: bool = False
    owner: RepoOwner
    description: str | None = None
    default_branch: str = "main"
    html_url: str


class TreeQuery(BaseModel):
    owner: str
    repo: str
    branch: str | None = None

    @field_validator("owner", "repo")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        return _validate_name(v, info.field_name)

    @field_validator("branch")
    @classmethod
    def validate_branch(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ContentQuery(BaseModel):
    owner: str
    repo: str
    branch: str
    path: str

    @field_validator("owner", "repo")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        return _validate_name(v, info.field_name)

    @field_validator("branch")
    @classmethod
    def validate_branch(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("branch must not be empty")
        return v

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        v = v.strip().lstrip("/")
        if not v:
            raise ValueError("path must not be empty")
        if ".." in v.split("/"):
            raise ValueError("path must not contain '..' segments")
        return v
