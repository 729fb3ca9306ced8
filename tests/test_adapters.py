"""
Tests for adapters — real backends on tmp_path, mock, and the registry.
"""

from __future__ import annotations

import io
import json
import os
import shutil
import subprocess
import tarfile
import urllib.error
import zipfile
from pathlib import Path

import pytest

from devstrap.adapters.archive.unpack import ArchiveAdapter
from devstrap.adapters.base import ExecutionContext
from devstrap.adapters.mock import MOCK_RELEASE, MockAdapter
from devstrap.adapters.net.http import HttpAdapter
from devstrap.adapters.registry import AdapterRegistry
from devstrap.adapters.shell.command import ShellCommandAdapter
from devstrap.adapters.shell.filesystem import FilesystemAdapter
from devstrap.adapters.vcs.git import GitAdapter
from devstrap.core.models.action import Action, Receipt


def _ctx(adapter: str, dry_run: bool = False, **params) -> ExecutionContext:
    return ExecutionContext(action=Action(id="test", adapter=adapter, params=params), dry_run=dry_run)


# ── Shell ────────────────────────────────────────────────────────────


class TestShellCommandAdapter:
    def test_name_and_available(self):
        adapter = ShellCommandAdapter()
        assert adapter.name == "shell"
        assert adapter.is_available()

    def test_validate_requires_argv_list(self):
        adapter = ShellCommandAdapter()
        ok, _ = adapter.validate(_ctx("shell", operation="run", command=["echo", "hi"]))
        assert ok
        ok, err = adapter.validate(_ctx("shell", operation="run", command="echo hi"))
        assert not ok
        assert "argument list" in err

    def test_validate_unknown_operation(self):
        ok, err = ShellCommandAdapter().validate(_ctx("shell", operation="spawn", command=["x"]))
        assert not ok
        assert "spawn" in err

    def test_validate_missing_cwd(self, tmp_path: Path):
        ok, err = ShellCommandAdapter().validate(
            _ctx("shell", command=["pwd"], cwd=str(tmp_path / "nope"))
        )
        assert not ok
        assert "Working directory" in err

    def test_run_success(self):
        r = ShellCommandAdapter().execute(_ctx("shell", operation="run", command=["echo", "hello"]))
        assert r.ok
        assert r.output == "hello"
        assert r.return_code == 0

    def test_run_failure_carries_stderr_and_code(self):
        r = ShellCommandAdapter().execute(
            _ctx("shell", operation="run", command=["sh", "-c", "echo boom >&2; exit 3"])
        )
        assert r.failed
        assert r.error == "boom"
        assert r.return_code == 3

    def test_run_failure_without_stderr(self):
        r = ShellCommandAdapter().execute(_ctx("shell", operation="run", command=["sh", "-c", "exit 4"]))
        assert r.failed
        assert r.error == "Command exited with code 4"

    def test_missing_binary_is_127(self):
        r = ShellCommandAdapter().execute(
            _ctx("shell", operation="run", command=["devstrap-no-such-binary"])
        )
        assert r.failed
        assert r.return_code == 127

    def test_stdout_path(self, tmp_path: Path):
        out = tmp_path / "cfg" / "config.kdl"
        r = ShellCommandAdapter().execute(
            _ctx("shell", operation="run", command=["echo", "keybinds {}"], stdout_path=str(out))
        )
        assert r.ok
        assert out.read_text() == "keybinds {}\n"

    def test_env_is_merged(self):
        r = ShellCommandAdapter().execute(
            _ctx("shell", operation="run", command=["sh", "-c", "echo $ZSH"], env={"ZSH": "/opt/omz"})
        )
        assert r.output == "/opt/omz"

    def test_long_output_is_tailed(self):
        r = ShellCommandAdapter().execute(
            _ctx("shell", operation="run", command=["sh", "-c", "yes x | head -n 5000"])
        )
        assert r.ok
        assert len(r.output) == 2000

    def test_which(self):
        adapter = ShellCommandAdapter()
        r = adapter.execute(_ctx("shell", operation="which", binary="sh"))
        assert r.ok
        assert os.path.isabs(r.output)
        r = adapter.execute(_ctx("shell", operation="which", binary="devstrap-no-such-binary"))
        assert r.failed

    def test_interactive_prompt_reaches_terminal(self, capfd: pytest.CaptureFixture[str]):
        r = ShellCommandAdapter().execute(
            _ctx(
                "shell",
                operation="run",
                command=["sh", "-c", "printf 'Password: ' >&2; echo changed"],
                interactive=True,
            )
        )
        captured = capfd.readouterr()
        assert r.ok
        assert "Password: " in captured.err
        assert "changed" in captured.out
        assert r.output == ""

    def test_interactive_failure_reports_exit_code(self):
        r = ShellCommandAdapter().execute(
            _ctx("shell", operation="run", command=["sh", "-c", "exit 3"], interactive=True)
        )
        assert r.failed
        assert r.return_code == 3
        assert r.error == "Command exited with code 3"

    def test_interactive_skips_capture(self, monkeypatch: pytest.MonkeyPatch):
        seen: dict = {}

        def fake_run(command, **kwargs):
            seen.update(kwargs)
            return subprocess.CompletedProcess(command, 0, None, None)

        monkeypatch.setattr("devstrap.adapters.shell.command.subprocess.run", fake_run)
        adapter = ShellCommandAdapter()
        adapter.execute(
            _ctx("shell", operation="run", command=["chsh", "-s", "/usr/bin/zsh"], interactive=True)
        )
        assert seen["capture_output"] is False
        adapter.execute(_ctx("shell", operation="run", command=["zellij", "setup", "--dump-config"]))
        assert seen["capture_output"] is True

    def test_interactive_and_stdout_path_are_exclusive(self, tmp_path: Path):
        ok, err = ShellCommandAdapter().validate(
            _ctx("shell", command=["true"], interactive=True, stdout_path=str(tmp_path / "out"))
        )
        assert not ok
        assert "mutually exclusive" in err


# ── Filesystem ───────────────────────────────────────────────────────


class TestFilesystemAdapter:
    def test_validate(self, tmp_path: Path):
        fs = FilesystemAdapter()
        assert fs.validate(_ctx("filesystem", operation="mkdir", path=str(tmp_path)))[0]
        assert not fs.validate(_ctx("filesystem", operation="explode", path="/x"))[0]
        assert not fs.validate(_ctx("filesystem", operation="mkdir"))[0]
        assert not fs.validate(_ctx("filesystem", operation="symlink", path="/x"))[0]
        assert not fs.validate(_ctx("filesystem", operation="append_line", path="/x"))[0]

    def test_exists_sees_dangling_symlink(self, tmp_path: Path):
        link = tmp_path / "fd"
        link.symlink_to(tmp_path / "missing")
        r = FilesystemAdapter().execute(_ctx("filesystem", operation="exists", path=str(link)))
        assert r.ok
        assert r.metadata["exists"] is True

    def test_read_missing_fails(self, tmp_path: Path):
        r = FilesystemAdapter().execute(
            _ctx("filesystem", operation="read", path=str(tmp_path / "nope"))
        )
        assert r.failed

    def test_write_then_read(self, tmp_path: Path):
        fs = FilesystemAdapter()
        target = tmp_path / "a" / "b.txt"
        assert fs.execute(_ctx("filesystem", operation="write", path=str(target), content="hi")).ok
        r = fs.execute(_ctx("filesystem", operation="read", path=str(target)))
        assert r.output == "hi"

    def test_append_line_unique(self, tmp_path: Path):
        fs = FilesystemAdapter()
        rc = tmp_path / ".zshrc"
        rc.write_text("export EDITOR=nvim")  # no trailing newline
        line = 'eval "$(zellij setup --init zsh)"'

        first = fs.execute(_ctx("filesystem", operation="append_line", path=str(rc), line=line, unique=True))
        second = fs.execute(_ctx("filesystem", operation="append_line", path=str(rc), line=line, unique=True))

        assert first.ok
        assert second.skipped
        assert rc.read_text() == f"export EDITOR=nvim\n{line}\n"

    def test_append_line_duplicates_without_unique(self, tmp_path: Path):
        fs = FilesystemAdapter()
        rc = tmp_path / ".zshrc"
        for _ in range(2):
            fs.execute(_ctx("filesystem", operation="append_line", path=str(rc), line="x"))
        assert rc.read_text() == "x\nx\n"

    def test_symlink_and_existing_link_fails(self, tmp_path: Path):
        fs = FilesystemAdapter()
        link = tmp_path / "fd"
        r = fs.execute(_ctx("filesystem", operation="symlink", path=str(link), target="/usr/bin/fdfind"))
        assert r.ok
        assert os.readlink(link) == "/usr/bin/fdfind"

        again = fs.execute(_ctx("filesystem", operation="symlink", path=str(link), target="/usr/bin/fdfind"))
        assert again.failed
        assert "Filesystem error" in again.error

    def test_chmod(self, tmp_path: Path):
        f = tmp_path / "win32yank.exe"
        f.write_bytes(b"MZ")
        r = FilesystemAdapter().execute(_ctx("filesystem", operation="chmod", path=str(f), mode=0o755))
        assert r.ok
        assert f.stat().st_mode & 0o777 == 0o755

    def test_remove(self, tmp_path: Path):
        fs = FilesystemAdapter()
        f = tmp_path / "lazygit.tar.gz"
        f.write_bytes(b"x")
        d = tmp_path / "dir"
        (d / "sub").mkdir(parents=True)

        assert fs.execute(_ctx("filesystem", operation="remove", path=str(f))).ok
        assert fs.execute(_ctx("filesystem", operation="remove", path=str(d))).ok
        assert not f.exists()
        assert not d.exists()
        assert fs.execute(_ctx("filesystem", operation="remove", path=str(f))).skipped


# ── Archive ──────────────────────────────────────────────────────────


def _make_tar(path: Path, members: dict[str, bytes]) -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return path


def _make_zip(path: Path, members: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


class TestArchiveAdapter:
    def test_validate(self):
        adapter = ArchiveAdapter()
        assert not adapter.validate(_ctx("archive", operation="unpack"))[0]
        assert not adapter.validate(_ctx("archive", operation="extract", archive="/a.zip"))[0]

    def test_extract_from_tarball(self, tmp_path: Path):
        archive = _make_tar(
            tmp_path / "lazygit.tar.gz",
            {"LICENSE": b"MIT", "README.md": b"readme", "lazygit": b"\x7fELF"},
        )
        dest = tmp_path / "out" / "lazygit"
        r = ArchiveAdapter().execute(
            _ctx("archive", operation="extract", archive=str(archive), member="lazygit", dest=str(dest))
        )
        assert r.ok
        assert dest.read_bytes() == b"\x7fELF"
        assert not (tmp_path / "out" / "LICENSE").exists()

    def test_extract_from_zip_matches_basename(self, tmp_path: Path):
        archive = _make_zip(tmp_path / "w.zip", {"bin/win32yank.exe": b"MZ", "README.md": b"r"})
        dest = tmp_path / "win32yank.exe"
        r = ArchiveAdapter().execute(
            _ctx("archive", operation="extract", archive=str(archive), member="win32yank.exe", dest=str(dest))
        )
        assert r.ok
        assert dest.read_bytes() == b"MZ"

    def test_missing_member(self, tmp_path: Path):
        archive = _make_zip(tmp_path / "w.zip", {"README.md": b"r"})
        r = ArchiveAdapter().execute(
            _ctx("archive", operation="extract", archive=str(archive), member="win32yank.exe", dest=str(tmp_path / "x"))
        )
        assert r.failed
        assert "not found" in r.error

    def test_missing_archive(self, tmp_path: Path):
        r = ArchiveAdapter().execute(
            _ctx("archive", operation="extract", archive=str(tmp_path / "no.zip"), member="m", dest=str(tmp_path / "x"))
        )
        assert r.failed
        assert "Archive not found" in r.error

    def test_unsupported_format(self, tmp_path: Path):
        bogus = tmp_path / "bogus.bin"
        bogus.write_bytes(b"not an archive")
        r = ArchiveAdapter().execute(
            _ctx("archive", operation="extract", archive=str(bogus), member="m", dest=str(tmp_path / "x"))
        )
        assert r.failed
        assert "Unsupported" in r.error


# ── HTTP ─────────────────────────────────────────────────────────────


class TestHttpAdapter:
    def _serve(self, monkeypatch: pytest.MonkeyPatch, body: bytes | Exception) -> None:
        def fake_open(self, url, timeout, accept="*/*"):
            if isinstance(body, Exception):
                raise body
            return io.BytesIO(body)

        monkeypatch.setattr(HttpAdapter, "_open", fake_open)

    def test_validate(self):
        adapter = HttpAdapter()
        assert not adapter.validate(_ctx("http", operation="download", url="https://x"))[0]
        assert not adapter.validate(_ctx("http", operation="release_field", url="https://x"))[0]
        assert not adapter.validate(_ctx("http", operation="upload", url="https://x"))[0]
        assert adapter.validate(_ctx("http", operation="download", url="https://x", dest="/tmp/x"))[0]

    def test_release_field_strips_prefix(self, monkeypatch: pytest.MonkeyPatch):
        self._serve(monkeypatch, json.dumps({"tag_name": "v0.44.1"}).encode())
        r = HttpAdapter().execute(
            _ctx("http", operation="release_field", url="https://api", field="tag_name", strip_prefix="v")
        )
        assert r.ok
        assert r.output == "0.44.1"

    def test_release_field_missing_is_failure(self, monkeypatch: pytest.MonkeyPatch):
        self._serve(monkeypatch, json.dumps({"message": "API rate limit exceeded"}).encode())
        r = HttpAdapter().execute(_ctx("http", operation="release_field", url="https://api", field="tag_name"))
        assert r.failed
        assert "tag_name" in r.error

    def test_release_field_not_json(self, monkeypatch: pytest.MonkeyPatch):
        self._serve(monkeypatch, b"<html>")
        r = HttpAdapter().execute(_ctx("http", operation="release_field", url="https://api", field="tag_name"))
        assert r.failed
        assert "not JSON" in r.error

    def test_download(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        self._serve(monkeypatch, b"archive-bytes")
        dest = tmp_path / "dl" / "lazygit.tar.gz"
        r = HttpAdapter().execute(_ctx("http", operation="download", url="https://x", dest=str(dest)))
        assert r.ok
        assert dest.read_bytes() == b"archive-bytes"
        assert r.metadata["size_bytes"] == len(b"archive-bytes")

    def test_download_error_leaves_no_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        self._serve(monkeypatch, urllib.error.URLError("unreachable"))
        dest = tmp_path / "lazygit.tar.gz"
        r = HttpAdapter().execute(_ctx("http", operation="download", url="https://x", dest=str(dest)))
        assert r.failed
        assert "unreachable" in r.error
        assert not dest.exists()


# ── Git ──────────────────────────────────────────────────────────────


class TestGitAdapter:
    def test_validate(self):
        adapter = GitAdapter()
        assert not adapter.validate(_ctx("git", operation="pull", url="u", dest="d"))[0]
        assert not adapter.validate(_ctx("git", operation="clone", dest="d"))[0]
        assert adapter.validate(_ctx("git", operation="clone", url="u", dest="d"))[0]

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_clone_of_missing_repository_fails(self, tmp_path: Path):
        r = GitAdapter().execute(
            _ctx("git", operation="clone", url=str(tmp_path / "no-repo"), dest=str(tmp_path / "dest"))
        )
        assert r.failed
        assert r.return_code == 128


# ── Mock + registry ──────────────────────────────────────────────────


def _probe(operation: str, **params) -> ExecutionContext:
    action = Action(
        id=f"probe:{operation}:x", adapter="filesystem", params={"operation": operation, **params}
    )
    return ExecutionContext(action=action)


class TestMockAdapter:
    def test_default_success_and_call_log(self):
        mock = MockAdapter("shell")
        r = mock.execute(_ctx("shell", command=["true"]))
        assert r.ok
        assert r.return_code == 0
        assert mock.call_count == 1

    def test_set_failure_with_return_code(self):
        mock = MockAdapter("shell")
        mock.set_failure("test", "E: lock held", return_code=100)
        r = mock.execute(_ctx("shell"))
        assert r.failed
        assert r.return_code == 100

    def test_reset(self):
        mock = MockAdapter()
        mock.set_failure("test")
        mock.execute(_ctx("mock"))
        mock.reset()
        assert mock.call_count == 0
        assert mock.execute(_ctx("mock")).ok

    def test_host_lookups_see_a_bare_host(self):
        mock = MockAdapter()
        exists = mock.execute(_probe("exists", path="/home/dev/dotfiles"))
        assert exists.ok
        assert exists.metadata["exists"] is False
        assert mock.execute(_probe("which", binary="snap")).failed
        assert mock.execute(_probe("read", path="/proc/sys/kernel/osrelease")).failed

    def test_planned_which_and_release_lookup_succeed(self):
        mock = MockAdapter()
        located = mock.execute(_ctx("shell", operation="which", binary="zsh"))
        assert located.ok
        assert located.output == "/usr/bin/zsh"
        version = mock.execute(_ctx("http", operation="release_field", field="tag_name"))
        assert version.output == MOCK_RELEASE


class TestAdapterRegistry:
    def test_unknown_adapter(self):
        r = AdapterRegistry().execute_action(Action(id="a", adapter="docker"))
        assert r.failed
        assert "No adapter registered" in r.error

    def test_validation_failure(self):
        registry = AdapterRegistry()
        registry.register(FilesystemAdapter())
        r = registry.execute_action(
            Action(id="a", adapter="filesystem", params={"operation": "explode", "path": "/x"})
        )
        assert r.failed
        assert r.error.startswith("Validation failed")

    def test_dry_run_skips_execution(self):
        registry = AdapterRegistry()
        mock = MockAdapter("shell")
        registry.register(mock)
        r = registry.execute_action(Action(id="a", name="apt-get update", adapter="shell"), dry_run=True)
        assert r.skipped
        assert "Would execute apt-get update" in r.output
        assert mock.call_count == 0

    def test_mock_mode(self):
        registry = AdapterRegistry(mock_mode=True)
        r = registry.execute_action(Action(id="a", adapter="anything"))
        assert r.ok
        assert r.metadata["mock"] is True

    def test_mock_mode_host_lookups_are_negative(self):
        registry = AdapterRegistry(mock_mode=True)
        registry.register(ShellCommandAdapter())
        assert registry.which("sh") is None
        assert not registry.path_exists("/")
        assert registry.read_text("/proc/version") is None

    def test_set_mock_mode_with_custom_adapter(self):
        registry = AdapterRegistry()
        mock = MockAdapter()
        registry.set_mock_mode(True, mock)
        assert registry.execute_action(Action(id="a", adapter="git")).ok
        assert mock.call_count == 1

    def test_adapter_raising_becomes_failure(self):
        class Exploding(MockAdapter):
            def execute(self, context):
                raise RuntimeError("kaboom")

        registry = AdapterRegistry()
        registry.register(Exploding("shell"))
        r = registry.execute_action(Action(id="a", adapter="shell"))
        assert r.failed
        assert "kaboom" in r.error

    def test_host_lookups(self, tmp_path: Path):
        registry = AdapterRegistry()
        registry.register(FilesystemAdapter())
        registry.register(ShellCommandAdapter())
        f = tmp_path / "version"
        f.write_text("Linux version 6.8.0")

        assert registry.path_exists(str(f))
        assert not registry.path_exists(str(tmp_path / "nope"))
        assert registry.read_text(str(f)) == "Linux version 6.8.0"
        assert registry.read_text(str(tmp_path / "nope")) is None
        assert registry.which("sh")
        assert registry.which("devstrap-no-such-binary") is None

    def test_lookup_receipt_for_custom_response(self):
        registry = AdapterRegistry()
        mock = MockAdapter("shell")
        mock.set_response(
            "probe:which:snap", Receipt.success(adapter="shell", action_id="x", output="/usr/bin/snap")
        )
        registry.register(mock)
        assert registry.which("snap") == "/usr/bin/snap"


# ── In-memory machine ────────────────────────────────────────────────


class TestFakeMachine:
    def test_unknown_binary_is_127(self):
        from devstrap.adapters.fake import FakeMachine

        machine = FakeMachine()
        r = machine.registry().execute_action(
            Action(id="a", adapter="shell", params={"operation": "run", "command": ["nala", "update"]})
        )
        assert r.failed
        assert r.return_code == 127

    def test_command_output_and_effect(self):
        from devstrap.adapters.fake import FakeMachine

        machine = FakeMachine()
        machine.command_output("uname", "-m", stdout="aarch64\n")
        machine.on_command("touch", effect=lambda m, argv: m.write(argv[1], ""))

        registry = machine.registry()
        r = registry.execute_action(
            Action(id="a", adapter="shell", params={"operation": "run", "command": ["uname", "-m"]})
        )
        assert r.failed  # uname is not installed on the fake host

        machine.add_binary("uname")
        r = registry.execute_action(
            Action(id="a", adapter="shell", params={"operation": "run", "command": ["uname", "-m"]})
        )
        assert r.output == "aarch64"

        registry.execute_action(
            Action(id="b", adapter="shell", params={"operation": "run", "command": ["touch", "/tmp/marker"]})
        )
        assert machine.exists("/tmp/marker")

    def test_clone_into_existing_directory_fails(self):
        from devstrap.adapters.fake import FakeMachine

        machine = FakeMachine()
        machine.add_binary("git")
        machine.mkdir("/home/dev/dotfiles")
        r = machine.registry().execute_action(
            Action(
                id="c",
                adapter="git",
                params={"operation": "clone", "url": "https://x/d.git", "dest": "/home/dev/dotfiles"},
            )
        )
        assert r.failed
        assert r.return_code == 128
