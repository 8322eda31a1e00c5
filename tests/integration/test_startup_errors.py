"""Tests for server startup error scenarios.

Covers:
- Missing Gemini API key (refuses to start)
- Wrong-type config values
- Unwriteable db_path parent directory (lifespan failure)
"""

from __future__ import annotations

import os
import subprocess
import sys
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

API_KEY = "server-key-0123456789abcdef"


def _run_and_wait(env: dict[str, str], timeout: int = 20) -> subprocess.CompletedProcess[str]:
    """Start the server and wait for it to exit. Only for crash scenarios."""
    return subprocess.run(
        [sys.executable, "-m", "codemind.server"],
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=env,
    )


class TestMissingApiKey:
    def test_exits_without_api_key(self, subprocess_env: dict[str, str]) -> None:
        result = _run_and_wait(subprocess_env)
        assert result.returncode != 0
        assert "startup_failed" in result.stderr

    def test_empty_api_key_is_missing(self, subprocess_env: dict[str, str]) -> None:
        env = {**subprocess_env, "CODEMIND__LLM__API_KEY": ""}
        result = _run_and_wait(env)
        assert result.returncode != 0


class TestBadConfigType:
    def test_crashes_on_wrong_type(self, subprocess_env: dict[str, str]) -> None:
        """A non-integer port is rejected before anything starts."""
        env = {
            **subprocess_env,
            "CODEMIND__LLM__API_KEY": API_KEY,
            "CODEMIND__SERVER__PORT": "not-a-number",
        }
        result = _run_and_wait(env)
        assert result.returncode != 0


class TestDbPathStartup:
    @pytest.mark.skipif(
        os.name == "nt" or (hasattr(os, "getuid") and os.getuid() == 0),
        reason="Permission checks don't apply on Windows or when running as root.",
    )
    def test_unwriteable_db_path_crashes_server(
        self, tmp_path: Path, subprocess_env: dict[str, str]
    ) -> None:
        """SQLite cannot create the database in a read-only directory."""
        readonly = tmp_path / "readonly"
        readonly.mkdir()
        readonly.chmod(0o555)

        try:
            env = {
                **subprocess_env,
                "CODEMIND__LLM__API_KEY": API_KEY,
                "CODEMIND__CACHE__DB_PATH": str(readonly / "cache.db"),
            }
            result = _run_and_wait(env)
            assert result.returncode != 0
        finally:
            readonly.chmod(0o755)
