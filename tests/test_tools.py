import re
import shutil
from pathlib import Path

import pytest

from fast_context.tools.errors import SandboxViolation, ValidationError
from fast_context.tools.executor import ToolExecutor, command_sort_key
from fast_context.tools.fs_ops import ProjectFS, glob_match, matches_any_glob
from fast_context.tools.truncation import TRUNCATION_MARKER, TruncationPolicy


def _make_repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "src" / "auth").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / ".git").mkdir()
    (root / "src" / "auth" / "login.py").write_text(
        "import hashlib\n\n\ndef login(user, password):\n    return check_password(user, password)\n",
        encoding="utf-8",
    )
    (root / "src" / "auth" / "tokens.py").write_text("def issue_token(user):\n    return 'tok'\n", encoding="utf-8")
    (root / "src" / "app.py").write_text("from auth.login import login\n", encoding="utf-8")
    (root / "docs" / "guide.md").write_text("Call login() before anything else.\n", encoding="utf-8")
    (root / ".hidden.cfg").write_text("secret=1\n", encoding="utf-8")
    (root / "README.md").write_text("# demo\n", encoding="utf-8")
    return root


def _executor(root: Path, **kwargs) -> ToolExecutor:
    # Empty binary name forces the pure-Python search path.
    kwargs.setdefault("rg_binary", "")
    return ToolExecutor(root, **kwargs)


def test_truncation_limits_lines_and_width():
    policy = TruncationPolicy(max_lines=50, line_max_chars=250)
    text = "\n".join(f"{i}:" + "x" * 400 for i in range(120))
    out = policy.apply(text)
    lines = out.split("\n")
    assert len(lines) == 51
    assert lines[-1] == TRUNCATION_MARKER
    assert all(len(line) <= 250 for line in lines)


def test_truncation_is_idempotent():
    policy = TruncationPolicy(max_lines=5, line_max_chars=20)
    text = "\n".join("line %d %s" % (i, "y" * 30) for i in range(12))
    once = policy.apply(text)
    assert policy.apply(once) == once


def test_truncation_marker_respects_narrow_width():
    policy = TruncationPolicy(max_lines=1, line_max_chars=20)
    out = policy.apply("a\nb\nc")
    assert out == "a\n" + TRUNCATION_MARKER[:20]
    assert all(len(line) <= 20 for line in out.split("\n"))
    assert policy.apply(out) == out


def test_truncation_leaves_short_text_alone():
    assert TruncationPolicy().apply("a\nb") == "a\nb"


def test_truncation_policy_rejects_zero_limits():
    with pytest.raises(ValueError):
        TruncationPolicy(max_lines=0)


def test_resolve_virtual_and_relative_paths(tmp_path: Path):
    root = _make_repo(tmp_path)
    fs = ProjectFS(root)
    assert fs.resolve_path("/codebase") == root.resolve()
    assert fs.resolve_path("/codebase/src/app.py") == (root / "src" / "app.py").resolve()
    assert fs.resolve_path("src/app.py") == (root / "src" / "app.py").resolve()


@pytest.mark.parametrize("path", ["/etc/passwd", "/codebase/../../etc", "../outside", "~/.ssh"])
def test_resolve_path_rejects_escapes(tmp_path: Path, path: str):
    fs = ProjectFS(_make_repo(tmp_path))
    with pytest.raises(SandboxViolation):
        fs.resolve_path(path)


def test_resolve_path_rejects_empty(tmp_path: Path):
    fs = ProjectFS(_make_repo(tmp_path))
    with pytest.raises(ValidationError):
        fs.resolve_path("")


def test_readfile_numbers_lines(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.readfile("/codebase/src/auth/login.py", 4, 5)
    assert out == "4:def login(user, password):\n5:    return check_password(user, password)"


def test_readfile_whole_file(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.readfile("/codebase/src/auth/tokens.py")
    assert out.startswith("1:def issue_token(user):")


def test_readfile_missing_file(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.readfile("/codebase/nope.py") == "Error: file not found: /codebase/nope.py"
    assert executor.readfile("/codebase/src") == "Error: file not found: /codebase/src"


def test_readfile_outside_root_is_error_string(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.readfile("/codebase/../../etc/passwd").startswith("Error:")


def test_readfile_large_file_is_truncated(tmp_path: Path):
    root = _make_repo(tmp_path)
    (root / "big.txt").write_text("\n".join("z" * 300 for _ in range(80)), encoding="utf-8")
    out = _executor(root).readfile("/codebase/big.txt")
    lines = out.split("\n")
    assert len(lines) == 51
    assert lines[-1] == TRUNCATION_MARKER
    assert all(len(line) <= 250 for line in lines)


def test_tree_skips_hidden_and_sorts(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.tree("/codebase")
    lines = out.split("\n")
    assert lines[0] == "/codebase"
    assert ".git" not in out
    assert ".hidden.cfg" not in out
    assert lines[1:4] == ["├── README.md", "├── docs", "│   └── guide.md"]
    assert "└── src" in lines
    assert "    ├── app.py" in lines


def test_tree_levels_limit_depth(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.tree("/codebase/src", levels=1)
    assert out.split("\n") == ["/codebase/src", "├── app.py", "└── auth"]


def test_tree_relative_path_renders_virtual_root_line(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.tree("src/", levels=1)
    assert out.split("\n") == ["/codebase/src", "├── app.py", "└── auth"]


def test_tree_missing_directory(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.tree("/codebase/missing") == "Error: dir not found: /codebase/missing"
    assert executor.tree("/codebase/README.md") == "Error: dir not found: /codebase/README.md"


def test_ls_hides_dotfiles_unless_all(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.ls("/codebase") == "README.md\ndocs\nsrc"
    assert ".hidden.cfg" in executor.ls("/codebase", all_files=True).split("\n")


def test_ls_long_format(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    lines = executor.ls("/codebase/src", long_format=True).split("\n")
    assert lines[0] == "total 2"
    assert re.match(r"^-rwxr-xr-x  1 user  staff +\d+ \w{3} [ \d]\d \d\d:\d\d app\.py$", lines[1])
    assert lines[2].startswith("drwxr-xr-x")
    assert lines[2].endswith(" auth")


def test_ls_errors(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.ls("/codebase/missing") == "Error: dir not found: /codebase/missing"
    assert executor.ls("/codebase/README.md") == "Error: not a directory: /codebase/README.md"


def test_glob_single_level_and_recursive(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.glob("*.py", "/codebase/src") == "/codebase/src/app.py"
    recursive = executor.glob("**/*.py", "/codebase").split("\n")
    assert recursive == [
        "/codebase/src/app.py",
        "/codebase/src/auth/login.py",
        "/codebase/src/auth/tokens.py",
    ]


def test_glob_type_filter_and_no_matches(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.glob("*", "/codebase/src", type_filter="directory") == "/codebase/src/auth"
    assert executor.glob("*.rs", "/codebase") == "(no matches)"


def test_glob_match_semantics():
    assert glob_match("src/app.py", "src/*.py")
    assert not glob_match("src/auth/login.py", "src/*.py")
    assert glob_match("src/auth/login.py", "src/**/*.py")
    assert glob_match("app.py", "**/*.py")
    assert glob_match("a1.txt", "a[0-9].txt")
    assert glob_match("ab.txt", "a?.txt")


def test_matches_any_glob_directory_patterns():
    assert matches_any_glob("node_modules/pkg/index.js", "index.js", ["**/node_modules/**"])
    assert matches_any_glob("src/app.py", "app.py", ["*.py"])
    assert not matches_any_glob("src/app.py", "app.py", ["*.md"])


def test_rg_python_fallback_remaps_paths(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.rg("def login", "/codebase")
    assert out == "/codebase/src/auth/login.py:4:def login(user, password):"
    assert executor.rg_patterns == ["def login"]


def test_rg_include_and_exclude(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.rg("login", "/codebase", include=["*.md"])
    assert out == "/codebase/docs/guide.md:1:Call login() before anything else."
    excluded = executor.rg("login", "/codebase", exclude=["**/docs/**", "app.py"])
    assert "guide.md" not in excluded
    assert "app.py" not in excluded
    assert "/codebase/src/auth/login.py:4:" in excluded


def test_rg_no_matches_and_missing_path(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.rg("nothing_matches_this", "/codebase") == "(no matches)"
    assert executor.rg("x", "/codebase/missing") == "Error: path does not exist: /codebase/missing"
    assert executor.rg_patterns == ["nothing_matches_this", "x"]


def test_rg_invalid_regex_is_error_string(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.rg("(unclosed", "/codebase").startswith("Error: invalid regex")


@pytest.mark.skipif(shutil.which("rg") is None, reason="ripgrep not installed")
def test_rg_binary_output_is_remapped(tmp_path: Path):
    executor = ToolExecutor(_make_repo(tmp_path))
    out = executor.rg("issue_token", "/codebase/src")
    assert out == "/codebase/src/auth/tokens.py:1:def issue_token(user):"


def test_execute_command_unknown_and_invalid(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    assert executor.execute_command({"type": "rm", "path": "/"}) == "Error: unknown command type 'rm'"
    assert executor.execute_command({}) == "Error: unknown command type ''"
    assert executor.execute_command({"type": "rg"}).startswith("Error: invalid arguments for rg")
    assert executor.execute_command("not a dict") == "Error: command must be an object"


def test_execute_command_accepts_string_include(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.execute_command({"type": "rg", "pattern": "login", "path": "/codebase", "include": "*.md"})
    assert out.startswith("/codebase/docs/guide.md:1:")


def test_command_sort_key_is_natural():
    keys = ["command10", "command2", "command1"]
    assert sorted(keys, key=command_sort_key) == ["command1", "command2", "command10"]


def test_execute_batch_orders_results_and_patterns(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path), max_commands=8)
    args = {
        "command10": {"type": "rg", "pattern": "issue_token", "path": "/codebase"},
        "command2": {"type": "rg", "pattern": "def login", "path": "/codebase/src"},
        "command1": {"type": "ls", "path": "/codebase/src"},
        "command3": "ignored",
        "note": {"type": "ls", "path": "/codebase"},
    }
    out = executor.execute_batch(args)
    assert out.startswith("<command1_result>\napp.py\nauth\n</command1_result>")
    assert out.index("<command2_result>") < out.index("<command10_result>")
    assert "<command3_result>" not in out
    assert "note" not in out
    assert executor.rg_patterns == ["def login", "issue_token"]


def test_execute_batch_runs_commands_beyond_worker_limit(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path), max_commands=2)
    args = {f"command{i}": {"type": "ls", "path": "/codebase"} for i in range(1, 5)}
    args["command5"] = {"type": "rg", "pattern": "def login", "path": "/codebase"}
    out = executor.execute_batch(args)
    assert [f"<command{i}_result>" in out for i in range(1, 6)] == [True] * 5
    assert out.index("<command4_result>") < out.index("<command5_result>")
    assert executor.rg_patterns == ["def login"]


def test_execute_batch_failures_do_not_abort(tmp_path: Path):
    executor = _executor(_make_repo(tmp_path))
    out = executor.execute_batch(
        {
            "command1": {"type": "readfile", "file": "/etc/passwd"},
            "command2": {"type": "readfile", "file": "/codebase/README.md"},
        }
    )
    assert "<command1_result>\nError:" in out
    assert "<command2_result>\n1:# demo" in out
