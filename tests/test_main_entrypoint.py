from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from fast_context import __main__ as cli
from fast_context.config import Config
from fast_context.tooling.types import FileMatch, RepoMapMeta, SearchResult


class _StubOrchestrator:
    calls: list = []
    result = SearchResult(
        files=[FileMatch("src/auth.py", "/repo/src/auth.py", ((1, 20),))],
        rg_patterns=["authenticate"],
        meta=RepoMapMeta(depth=3, size_bytes=1024, fell_back=False),
    )

    def __init__(self, config):
        self.config = config

    def search(self, query, project_root, *, settings=None, on_progress=None):
        type(self).calls.append({"query": query, "project_root": project_root, "settings": settings})
        if on_progress is not None:
            on_progress("Turn 1/4")
        return type(self).result


@pytest.fixture
def stub_cli(monkeypatch):
    _StubOrchestrator.calls = []
    monkeypatch.setattr(cli.Config, "load", classmethod(lambda cls: Config()))
    monkeypatch.setattr(cli, "configure_logging", lambda config: None)
    monkeypatch.setattr(cli, "SearchOrchestrator", _StubOrchestrator)
    return _StubOrchestrator


def test_search_prints_formatted_result(stub_cli, capsys, tmp_path: Path):
    code = cli.main(["search", "--query", "auth flow", "--project-path", str(tmp_path), "--max-turns", "2"])
    out, err = capsys.readouterr()

    assert code == 0
    assert "Found 1 relevant files." in out
    assert "[1/1] /repo/src/auth.py (L1-20)" in out
    assert "Turn 1/4" in err
    call = stub_cli.calls[0]
    assert call["query"] == "auth flow"
    assert call["project_root"] == str(tmp_path)
    assert call["settings"].max_turns == 2


def test_search_json_output(stub_cli, capsys, tmp_path: Path):
    code = cli.main(["search", "-q", "auth", "--project-path", str(tmp_path), "--json"])
    out, err = capsys.readouterr()

    assert code == 0
    payload = json.loads(out)
    assert payload["files"][0]["ranges"] == [[1, 20]]
    assert payload["rg_patterns"] == ["authenticate"]
    assert payload["meta"] == {"tree_depth": 3, "tree_size_kb": 1.0, "fell_back": False}
    assert "Turn" not in err


def test_search_error_result_exits_nonzero(stub_cli, monkeypatch, capsys, tmp_path: Path):
    monkeypatch.setattr(stub_cli, "result", SearchResult(error="Rate limited, please try again later", http_status=429))
    code = cli.main(["search", "-q", "auth", "--project-path", str(tmp_path)])
    out, _ = capsys.readouterr()
    assert code == 1
    assert out.startswith("Error: Rate limited")
    assert "[hint] 429" in out


def test_search_requires_query(stub_cli, capsys):
    assert cli.main(["search"]) == 2
    assert "--query is required" in capsys.readouterr().err
    assert stub_cli.calls == []


def test_extract_key_json_masks_key(stub_cli, monkeypatch, capsys):
    key = "sk-" + "a" * 40 + "tail5678"
    monkeypatch.setattr(cli.CredentialStore, "discover", lambda self: {"api_key": key, "db_path": "/tmp/state.vscdb"})

    assert cli.main(["extract-key", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["api_key"] != key
    assert payload["api_key"].endswith("tail5678")

    assert cli.main(["extract-key", "--json", "--reveal"]) == 0
    assert json.loads(capsys.readouterr().out)["api_key"] == key


def test_extract_key_reports_discovery_error(stub_cli, capsys):
    assert cli.main(["extract-key"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_set_key_saves_to_keychain(stub_cli, monkeypatch, capsys):
    saved = []

    def save(self, api_key):
        saved.append(api_key)
        return True, "API key saved to system keychain"

    monkeypatch.setattr(cli.CredentialStore, "save_api_key", save)
    assert cli.main(["set-key", "--api-key", "sk-new"]) == 0
    assert saved == ["sk-new"]
    assert "saved" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "fast-context" in capsys.readouterr().out


def test_module_version_flag() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    process = subprocess.run(
        [sys.executable, "-m", "fast_context", "--version"],
        cwd=repo_root,
        capture_output=True,
        text=True,
    )
    assert process.returncode == 0
    assert process.stdout.strip() == cli.__version__
