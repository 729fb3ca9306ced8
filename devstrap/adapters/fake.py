"""
In-memory machine — fake adapters that share one simulated host.

``FakeMachine`` stands in for the real OS: a filesystem held in dicts,
a PATH lookup table, a package database, a login-shell pointer, and a
log of every command and URL touched. Its adapters subclass the real
ones, so parameter validation is identical and only ``execute`` is
simulated.

Typical use:

    machine = FakeMachine(home="/home/dev")
    machine.serve_json(API_URL, {"tag_name": "v0.44.1"})
    report = run_pipeline(settings, machine.registry())
    assert machine.login_shell == "/usr/bin/zsh"
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from devstrap.adapters.archive.unpack import ArchiveAdapter
from devstrap.adapters.base import ExecutionContext
from devstrap.adapters.net.http import HttpAdapter
from devstrap.adapters.registry import AdapterRegistry
from devstrap.adapters.shell.command import ShellCommandAdapter
from devstrap.adapters.shell.filesystem import FilesystemAdapter
from devstrap.adapters.vcs.git import GitAdapter
from devstrap.core.models.action import Receipt

# package name -> binary it puts on PATH
DEFAULT_PACKAGE_BINARIES: dict[str, str] = {
    "nala": "/usr/bin/nala",
    "git": "/usr/bin/git",
    "zsh": "/usr/bin/zsh",
    "fd-find": "/usr/bin/fdfind",
    "ripgrep": "/usr/bin/rg",
    "snapd": "/usr/bin/snap",
    "curl": "/usr/bin/curl",
    "wget": "/usr/bin/wget",
    "unzip": "/usr/bin/unzip",
    "tree": "/usr/bin/tree",
    "eza": "/usr/bin/eza",
}

DEFAULT_ZELLIJ_CONFIG = "// zellij default configuration\nkeybinds {\n}\n"

CommandEffect = Callable[["FakeMachine", list[str]], None]


@dataclass
class CommandFailure:
    prefix: tuple[str, ...]
    return_code: int
    stderr: str


def _norm(path: str) -> str:
    return posixpath.normpath(path)


class FakeMachine:
    """A simulated host shared by a set of fake adapters."""

    def __init__(self, home: str = "/home/dev", kernel_version: str = "Linux version 6.8.0-generic"):
        self.home = home
        self.files: dict[str, str] = {}
        self.dirs: set[str] = {"/", "/tmp", "/usr/local/bin", _norm(home)}
        self.links: dict[str, str] = {}
        self.modes: dict[str, int] = {}
        self.binaries: dict[str, str] = {"sh": "/bin/sh", "sudo": "/usr/bin/sudo"}
        self.packages: set[str] = set()
        self.snaps: set[str] = set()
        self.login_shell = "/bin/bash"

        self.commands: list[list[str]] = []
        self.sudo_commands: list[list[str]] = []
        self.network: list[str] = []
        self.clones: list[tuple[str, str]] = []

        self._json: dict[str, Any] = {}
        self._archives_by_url: dict[str, dict[str, str]] = {}
        self._archives: dict[str, dict[str, str]] = {}
        self._failures: list[CommandFailure] = []
        self._failed_urls: set[str] = set()
        self._effects: list[tuple[tuple[str, ...], CommandEffect]] = []
        self._outputs: list[tuple[tuple[str, ...], str]] = []

        self.files["/proc/version"] = kernel_version + "\n"
        self.dirs.add("/proc")

    # ── Scenario setup ───────────────────────────────────────────

    def serve_json(self, url: str, data: Any) -> None:
        self._json[url] = data

    def serve_archive(self, url: str, members: dict[str, str]) -> None:
        """Serve an archive whose members map name -> content."""
        self._archives_by_url[url] = members

    def fail_url(self, url: str) -> None:
        self._failed_urls.add(url)

    def fail_command(self, *prefix: str, return_code: int = 1, stderr: str = "") -> None:
        """Make every command whose argv starts with ``prefix`` fail."""
        self._failures.append(CommandFailure(tuple(prefix), return_code, stderr))

    def clear_failures(self) -> None:
        """Forget every injected command and URL failure."""
        self._failures.clear()
        self._failed_urls.clear()

    def on_command(self, *prefix: str, effect: CommandEffect) -> None:
        """Run ``effect(machine, argv)`` when a matching command succeeds."""
        self._effects.append((tuple(prefix), effect))

    def command_output(self, *prefix: str, stdout: str) -> None:
        self._outputs.append((tuple(prefix), stdout))

    def add_binary(self, name: str, path: str | None = None) -> None:
        self.binaries[name] = path or f"/usr/bin/{name}"

    def set_kernel_version(self, text: str) -> None:
        self.files["/proc/version"] = text + "\n"

    # ── Filesystem view ──────────────────────────────────────────

    def exists(self, path: str) -> bool:
        p = _norm(path)
        return p in self.files or p in self.dirs or p in self.links

    def read(self, path: str) -> str:
        return self.files[_norm(path)]

    def mkdir(self, path: str) -> None:
        p = _norm(path)
        while p not in self.dirs:
            self.dirs.add(p)
            p = posixpath.dirname(p)

    def write(self, path: str, content: str) -> None:
        p = _norm(path)
        self.mkdir(posixpath.dirname(p))
        self.files[p] = content

    def remove(self, path: str) -> bool:
        p = _norm(path)
        removed = False
        for store in (self.files, self.links, self._archives, self.modes):
            if p in store:
                del store[p]
                removed = True
        if p in self.dirs:
            prefix = p.rstrip("/") + "/"
            self.dirs = {d for d in self.dirs if d != p and not d.startswith(prefix)}
            self.files = {f: c for f, c in self.files.items() if not f.startswith(prefix)}
            removed = True
        return removed

    def which(self, binary: str) -> str | None:
        return self.binaries.get(binary)

    # ── Registry wiring ──────────────────────────────────────────

    def registry(self) -> AdapterRegistry:
        """An AdapterRegistry whose adapters all act on this machine."""
        registry = AdapterRegistry()
        registry.register(FakeShellAdapter(self))
        registry.register(FakeFilesystemAdapter(self))
        registry.register(FakeHttpAdapter(self))
        registry.register(FakeArchiveAdapter(self))
        registry.register(FakeGitAdapter(self))
        return registry

    # ── Command simulation ───────────────────────────────────────

    def run(
        self, argv: list[str], sudo: bool = False, env: dict[str, str] | None = None
    ) -> tuple[int, str, str]:
        self.commands.append(argv)
        if sudo:
            self.sudo_commands.append(argv)

        for failure in self._failures:
            if tuple(argv[: len(failure.prefix)]) == failure.prefix:
                return failure.return_code, "", failure.stderr

        if argv[0] not in self.binaries and not self._has_effect(argv):
            return 127, "", f"{argv[0]}: command not found"

        stdout = ""
        for prefix, out in self._outputs:
            if tuple(argv[: len(prefix)]) == prefix:
                stdout = out
                break
        else:
            if argv[:3] == ["zellij", "setup", "--dump-config"]:
                stdout = DEFAULT_ZELLIJ_CONFIG

        self._builtin_effects(argv, env or {})
        for prefix, effect in self._effects:
            if tuple(argv[: len(prefix)]) == prefix:
                effect(self, argv)
        return 0, stdout, ""

    def _has_effect(self, argv: list[str]) -> bool:
        return any(tuple(argv[: len(p)]) == p for p, _ in self._effects)

    def _builtin_effects(self, argv: list[str], env: dict[str, str]) -> None:
        tool = argv[0]
        if tool == "sh" and "--unattended" in argv:
            # the Oh My Zsh installer honours $ZSH as its install dir
            framework = env.get("ZSH", f"{self.home}/.oh-my-zsh")
            self.mkdir(f"{framework}/custom/plugins")
            self.write(f"{framework}/oh-my-zsh.sh", "# oh-my-zsh\n")
        elif tool in ("apt-get", "nala") and len(argv) > 1 and argv[1] == "install":
            for pkg in (a for a in argv[2:] if not a.startswith("-")):
                self.packages.add(pkg)
                if pkg in DEFAULT_PACKAGE_BINARIES:
                    name = posixpath.basename(DEFAULT_PACKAGE_BINARIES[pkg])
                    self.binaries[name] = DEFAULT_PACKAGE_BINARIES[pkg]
        elif tool == "snap" and len(argv) > 2 and argv[1] == "install":
            self.snaps.add(argv[2])
            self.binaries[argv[2]] = f"/snap/bin/{argv[2]}"
        elif tool == "chsh" and "-s" in argv:
            self.login_shell = argv[argv.index("-s") + 1]
        elif tool == "install" and len(argv) >= 3:
            src, dest = argv[-2], argv[-1]
            if _norm(src) in self.files:
                self.write(dest, self.files[_norm(src)])
                self.modes[_norm(dest)] = 0o755
        elif tool == "mv" and len(argv) == 3:
            src, dest = _norm(argv[1]), argv[2]
            if dest.endswith("/") or _norm(dest) in self.dirs:
                dest = posixpath.join(dest, posixpath.basename(src))
            if src in self.files:
                self.write(dest, self.files.pop(src))
                if src in self.modes:
                    self.modes[_norm(dest)] = self.modes.pop(src)


class FakeShellAdapter(ShellCommandAdapter):
    def __init__(self, machine: FakeMachine):
        self.machine = machine

    def execute(self, context: ExecutionContext) -> Receipt:
        if context.operation == "which":
            found = self.machine.which(context.params["binary"])
            if found is None:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"{context.params['binary']} not found on PATH",
                )
            return Receipt.success(adapter=self.name, action_id=context.action.id, output=found)

        argv = [str(a) for a in context.params["command"]]
        code, stdout, stderr = self.machine.run(
            argv, sudo=bool(context.params.get("sudo")), env=context.params.get("env")
        )
        metadata = {"command": argv, "return_code": code}
        if code != 0:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=stderr or f"Command exited with code {code}",
                metadata=metadata,
            )
        if context.params.get("stdout_path"):
            self.machine.write(context.params["stdout_path"], stdout)
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=f"Wrote {len(stdout)} bytes to {context.params['stdout_path']}",
                metadata=metadata,
            )
        return Receipt.success(
            adapter=self.name, action_id=context.action.id, output=stdout.strip(), metadata=metadata
        )


class FakeFilesystemAdapter(FilesystemAdapter):
    def __init__(self, machine: FakeMachine):
        self.machine = machine

    def execute(self, context: ExecutionContext) -> Receipt:
        m = self.machine
        op = context.operation
        path = _norm(context.params["path"])
        aid = context.action.id

        if op == "exists":
            exists = m.exists(path)
            return Receipt.success(
                adapter=self.name,
                action_id=aid,
                output=str(exists),
                metadata={"exists": exists, "is_dir": path in m.dirs, "path": path},
            )
        if op == "read":
            if path not in m.files:
                return Receipt.failure(adapter=self.name, action_id=aid, error=f"File not found: {path}")
            return Receipt.success(adapter=self.name, action_id=aid, output=m.files[path])
        if op == "write":
            m.write(path, context.params["content"])
            return Receipt.success(adapter=self.name, action_id=aid, output=f"Written to {path}")
        if op == "append_line":
            line = context.params["line"]
            existing = m.files.get(path, "")
            if context.params.get("unique") and line in existing.splitlines():
                return Receipt.skip(
                    adapter=self.name, action_id=aid, reason=f"Line already present in {path}"
                )
            prefix = "" if not existing or existing.endswith("\n") else "\n"
            m.write(path, f"{existing}{prefix}{line}\n")
            return Receipt.success(adapter=self.name, action_id=aid, output=f"Appended to {path}")
        if op == "mkdir":
            m.mkdir(path)
            return Receipt.success(adapter=self.name, action_id=aid, output=f"Directory created: {path}")
        if op == "symlink":
            if m.exists(path):
                return Receipt.failure(
                    adapter=self.name, action_id=aid, error=f"Filesystem error: File exists: '{path}'"
                )
            if posixpath.dirname(path) not in m.dirs:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=aid,
                    error=f"Filesystem error: No such file or directory: '{path}'",
                )
            m.links[path] = context.params["target"]
            return Receipt.success(adapter=self.name, action_id=aid, output=f"Linked {path}")
        if op == "chmod":
            if path not in m.files:
                return Receipt.failure(adapter=self.name, action_id=aid, error=f"File not found: {path}")
            m.modes[path] = int(context.params.get("mode", 0o755))
            return Receipt.success(adapter=self.name, action_id=aid, output=f"Mode set on {path}")
        if op == "remove":
            if not m.remove(path):
                return Receipt.skip(adapter=self.name, action_id=aid, reason=f"Nothing to remove at {path}")
            return Receipt.success(adapter=self.name, action_id=aid, output=f"Removed {path}")
        return Receipt.failure(adapter=self.name, action_id=aid, error=f"Unknown operation: {op}")


class FakeHttpAdapter(HttpAdapter):
    def __init__(self, machine: FakeMachine):
        self.machine = machine

    def execute(self, context: ExecutionContext) -> Receipt:
        m = self.machine
        url = context.params["url"]
        aid = context.action.id
        m.network.append(url)

        if url in m._failed_urls:
            return Receipt.failure(adapter=self.name, action_id=aid, error=f"HTTP Error 503 for {url}")

        if context.operation == "release_field":
            data = m._json.get(url)
            if data is None:
                return Receipt.failure(adapter=self.name, action_id=aid, error=f"HTTP Error 404 for {url}")
            field = context.params["field"]
            value = data.get(field) if isinstance(data, dict) else None
            if not isinstance(value, str) or not value:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=aid,
                    error=f"Field '{field}' not found in release metadata from {url}",
                )
            prefix = context.params.get("strip_prefix", "")
            if prefix and value.startswith(prefix):
                value = value[len(prefix):]
            return Receipt.success(adapter=self.name, action_id=aid, output=value)

        dest = _norm(context.params["dest"])
        if url in m._archives_by_url:
            m.write(dest, f"<archive {url}>")
            m._archives[dest] = dict(m._archives_by_url[url])
        elif url in m._json:
            m.write(dest, str(m._json[url]))
        else:
            return Receipt.failure(adapter=self.name, action_id=aid, error=f"HTTP Error 404 for {url}")
        return Receipt.success(adapter=self.name, action_id=aid, output=f"Downloaded {url} to {dest}")


class FakeArchiveAdapter(ArchiveAdapter):
    def __init__(self, machine: FakeMachine):
        self.machine = machine

    def execute(self, context: ExecutionContext) -> Receipt:
        m = self.machine
        archive = _norm(context.params["archive"])
        member = context.params["member"]
        aid = context.action.id
        members = m._archives.get(archive)
        if members is None:
            return Receipt.failure(adapter=self.name, action_id=aid, error=f"Archive not found: {archive}")
        for name, content in members.items():
            if name == member or name.rsplit("/", 1)[-1] == member:
                m.write(context.params["dest"], content)
                return Receipt.success(adapter=self.name, action_id=aid, output=f"Extracted {member}")
        return Receipt.failure(adapter=self.name, action_id=aid, error=f"'{member}' not found in {archive}")


class FakeGitAdapter(GitAdapter):
    def __init__(self, machine: FakeMachine):
        self.machine = machine

    def execute(self, context: ExecutionContext) -> Receipt:
        m = self.machine
        url = context.params["url"]
        dest = _norm(context.params["dest"])
        argv = ["git", "clone", url, dest]
        m.network.append(url)
        code, _, stderr = m.run(argv)
        if code == 0 and m.exists(dest):
            code, stderr = 128, f"fatal: destination path '{dest}' already exists and is not an empty directory."
        if code != 0:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=stderr or f"Command exited with code {code}",
                metadata={"command": argv, "return_code": code},
            )
        m.mkdir(f"{dest}/.git")
        m.clones.append((url, dest))
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Cloning into '{dest}'...",
            metadata={"command": argv, "return_code": 0},
        )
