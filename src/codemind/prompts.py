"""Prompt templates for the analyze, think and blueprint operations.

The templates demand strict markdown output in a fixed language. Nothing
downstream parses the model's answer, so these are instructions only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codemind.models.ai import ContextFile

ANALYST_SYSTEM_PROMPT = """\
You are a principal software architect reviewing a GitHub repository. \
You receive selected source files, each preceded by a header with its path.

Rules:
- Answer ONLY in {language}.
- Output strict, well-structured Markdown: headings, bullet lists and fenced \
code blocks. No preamble, no closing small talk.
- Base every claim on the files provided. When something is inferred rather \
than read, say so explicitly.
- When the web search tool is available, use it to confirm library versions \
and current best practices, and cite what you used.\
"""

DEFAULT_ANALYSIS_QUERY = """\
Produce a comprehensive analysis of this repository covering:
1. Purpose and main features
2. Architecture and module organization
3. Technology stack and key dependencies
4. Data flow between the main components
5. Code quality, risks and technical debt
6. Concrete improvement suggestions\
"""

THINK_SYSTEM_PROMPT = """\
You are a senior engineer helping the user plan changes to a repository you \
have already analyzed. The conversation so far is replayed in full.

Rules:
- Answer ONLY in {language}.
- Output strict, well-structured Markdown.
- Before proposing a solution, ask clarifying questions about anything \
ambiguous in the user's request (scope, constraints, priorities).
- When you have enough information, present a concrete, step-by-step plan.
- Always finish with a short question asking the user to confirm the plan \
or adjust it before anything is generated.\
"""

THINK_CONTEXT_PREFIX = "Project context (previous analysis of the repository):\n\n"

BLUEPRINT_SYSTEM_PROMPT = """\
You are a software architect writing a reconstruction blueprint: a document \
detailed enough for another team to rebuild the project from scratch.

Rules:
- Answer ONLY in {language}.
- Output strict Markdown with EXACTLY these six top-level sections, in order:
  # 1. Overview
  # 2. Architecture
  # 3. Technology Stack
  # 4. Modules and Data Flow
  # 5. Build, Configuration and Deployment
  # 6. Implementation Roadmap
- Do not add, remove, merge or rename sections.
- Be specific: name files, functions, libraries and versions found in the code.\
"""


def format_context_files(files: list[ContextFile]) -> str:
    """Concatenate files, each under a path header."""
    return "\n\n".join(f"--- FILE: {f.path} ---\n{f.content}" for f in files)


def build_analysis_prompt(files: list[ContextFile], query: str | None = None) -> str:
    instruction = query.strip() if query and query.strip() else DEFAULT_ANALYSIS_QUERY
    return f"{format_context_files(files)}\n\n--- REQUEST ---\n{instruction}"


def build_blueprint_prompt(files: list[ContextFile], analysis: str) -> str:
    parts = []
    if files:
        parts.append(format_context_files(files))
    parts.append(f"--- CURRENT ANALYSIS ---\n{analysis}")
    parts.append("--- REQUEST ---\nWrite the six-section blueprint for this project.")
    return "\n\n".join(parts)


def system_prompt(template: str, language: str) -> str:
    return template.format(language=language)
