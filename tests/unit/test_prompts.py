"""Unit tests for codemind.prompts."""

from __future__ import annotations

from codemind import prompts
from codemind.models.ai import ContextFile


def test_context_files_joined_with_path_headers() -> None:
    files = [ContextFile(path="a.py", content="A"), ContextFile(path="b/c.ts", content="C")]
    assert prompts.format_context_files(files) == "--- FILE: a.py ---\nA\n\n--- FILE: b/c.ts ---\nC"


def test_analysis_prompt_uses_custom_query() -> None:
    prompt = prompts.build_analysis_prompt([ContextFile(path="a.py", content="A")], "  Why?  ")
    assert prompt.endswith("--- REQUEST ---\nWhy?")


def test_blank_query_falls_back_to_default() -> None:
    prompt = prompts.build_analysis_prompt([ContextFile(path="a.py", content="A")], "   ")
    assert prompt.endswith(prompts.DEFAULT_ANALYSIS_QUERY)


def test_blueprint_prompt_without_files() -> None:
    prompt = prompts.build_blueprint_prompt([], "analysis text")
    assert prompt.startswith("--- CURRENT ANALYSIS ---\nanalysis text")
    assert "--- FILE:" not in prompt


def test_system_prompts_are_language_parameterized() -> None:
    for template in (
        prompts.ANALYST_SYSTEM_PROMPT,
        prompts.THINK_SYSTEM_PROMPT,
        prompts.BLUEPRINT_SYSTEM_PROMPT,
    ):
        rendered = prompts.system_prompt(template, "Brazilian Portuguese")
        assert "Answer ONLY in Brazilian Portuguese." in rendered
        assert "{language}" not in rendered


def test_blueprint_lists_six_sections_in_order() -> None:
    headings = [
        line.strip()
        for line in prompts.BLUEPRINT_SYSTEM_PROMPT.splitlines()
        if line.strip().startswith("# ")
    ]
    assert [h.split(".")[0] for h in headings] == [f"# {n}" for n in range(1, 7)]
