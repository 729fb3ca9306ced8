"""
Editor setup — Neovim from snap, lazygit from its latest GitHub release.

lazygit flow:

    releases/latest API → tag_name (v-stripped) → download the
    Linux_<arch> tarball → extract the one 'lazygit' member →
    sudo install into bin_dir → remove the temp artifacts

A missing ``tag_name`` or a failed download is fatal; the temp
artifacts are removed either way.
"""

from __future__ import annotations

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.action import Action
from devstrap.core.models.settings import Settings
from devstrap.core.services.platform import release_arch
from devstrap.core.stages.base import Stage, command, ensure_snapd, filesystem, snap_install

NAME = "editor"

GITHUB_API = "https://api.github.com"
GITHUB = "https://github.com"


def lazygit_urls(repo: str, arch: str) -> tuple[str, str]:
    """(release metadata URL, archive URL template with ``{lazygit_version}``)."""
    api_url = f"{GITHUB_API}/repos/{repo}/releases/latest"
    archive_url = (
        f"{GITHUB}/{repo}/releases/latest/download/"
        f"lazygit_{{lazygit_version}}_Linux_{arch}.tar.gz"
    )
    return api_url, archive_url


def plan(settings: Settings, registry: AdapterRegistry) -> StagePlan:
    editor = settings.editor
    arch = editor.arch or release_arch()
    api_url, archive_url = lazygit_urls(editor.lazygit_repo, arch)
    archive = settings.tmp("lazygit.tar.gz")
    extracted = settings.tmp(editor.lazygit_binary)
    installed = f"{settings.bin_dir.rstrip('/')}/{editor.lazygit_binary}"

    actions: list[Action] = [
        ensure_snapd(NAME, settings.packages.frontend),
        snap_install(NAME, editor.snap),
        Action(
            id=f"{NAME}:lazygit-version",
            name="Query latest lazygit release",
            adapter="http",
            params={
                "operation": "release_field",
                "url": api_url,
                "field": "tag_name",
                "strip_prefix": "v",
            },
            register_as="lazygit_version",
        ),
        Action(
            id=f"{NAME}:lazygit-download",
            name="Download lazygit {lazygit_version}",
            adapter="http",
            params={"operation": "download", "url": archive_url, "dest": archive},
            templated=["url"],
        ),
        Action(
            id=f"{NAME}:lazygit-extract",
            name=f"Extract {editor.lazygit_binary}",
            adapter="archive",
            params={
                "operation": "extract",
                "archive": archive,
                "member": editor.lazygit_binary,
                "dest": extracted,
            },
        ),
        command(
            NAME,
            "lazygit-install",
            ["install", "-m", "0755", extracted, installed],
            name=f"Install {editor.lazygit_binary} into {settings.bin_dir}",
            sudo=True,
        ),
        filesystem(NAME, "cleanup-archive", "remove", archive, always=True),
        filesystem(NAME, "cleanup-binary", "remove", extracted, always=True),
    ]

    return StagePlan(
        stage=NAME,
        title="Installing Neovim and dependencies (Lazygit)...",
        actions=actions,
    )


STAGE = Stage(
    name=NAME,
    description="Install Neovim (snap) and lazygit (GitHub release)",
    planner=plan,
)
