from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContextFile(BaseModel):
    """A file already trimmed by the caller, ready to embed in a prompt."""

    path: str
    content: str


class RelatedLink(BaseModel):
    title: str
    url: str


class ChatTurn(BaseModel):
    """One turn of the transcript replayed on every follow-up request."""

    role: Literal["user", "model", "system"]
    content: str
    timestamp: int | None = None  # epoch millis, informational only
    related_links: list[RelatedLink] | None = Field(default=None, alias="relatedLinks")

    model_config = ConfigDict(populate_by_name=True)


class AnalyzeInput(BaseModel):
    context_files: list[ContextFile] = Field(alias="contextFiles")
    prompt: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("context_files")
    @classmethod
    def validate_files(cls, v: list[ContextFile]) -> list[ContextFile]:
        if not v:
            raise ValueError("contextFiles must not be empty")
        return v


class ThinkInput(BaseModel):
    history: list[ChatTurn] = []
    current_input: str = Field(alias="currentInput")
    context: str = ""

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("current_input")
    @classmethod
    def validate_input(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("currentInput must not be empty")
        return v


class BlueprintInput(BaseModel):
    context_files: list[ContextFile] = Field(default=[], alias="contextFiles")
    context: str

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("context")
    @classmethod
    def validate_context(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("context must not be empty")
        return v


class ModelResponse(BaseModel):
    """What the gateway hands back: text plus grounding metadata."""

    text: str
    candidates: list[dict[str, Any]] | None = None
    related_links: list[RelatedLink] = Field(default=[], serialization_alias="relatedLinks")
    model: str
    fallback_used: bool = Field(default=False, serialization_alias="fallbackUsed")
