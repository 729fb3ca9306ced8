"""
Archive adapter — pull one named member out of a tarball or zip.

Release archives ship READMEs and licenses next to the binary; only the
single requested member is ever written to disk.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import zipfile
from pathlib import Path

from devstrap.adapters.base import Adapter, ExecutionContext
from devstrap.core.models.action import Receipt

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """Raised internally when an archive cannot yield the member."""


class ArchiveAdapter(Adapter):
    """Single-member extraction.

    Action params:
        operation (str): 'extract'.
        archive (str): Path to a .tar.gz/.tgz/.tar or .zip file.
        member (str): Member name (matched against the basename too).
        dest (str): File path to write the member to.
    """

    @property
    def name(self) -> str:
        return "archive"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if context.operation != "extract":
            return False, f"Unknown operation '{context.operation}'. Valid: extract"
        for key in ("archive", "member", "dest"):
            if not context.params.get(key):
                return False, f"Missing required param: '{key}'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        archive = Path(context.params["archive"])
        member = context.params["member"]
        dest = Path(context.params["dest"])

        try:
            if not archive.is_file():
                raise ArchiveError(f"Archive not found: {archive}")
            dest.parent.mkdir(parents=True, exist_ok=True)
            if zipfile.is_zipfile(archive):
                _extract_zip(archive, member, dest)
            elif tarfile.is_tarfile(archive):
                _extract_tar(archive, member, dest)
            else:
                raise ArchiveError(f"Unsupported archive format: {archive}")
        except (ArchiveError, OSError, tarfile.TarError, zipfile.BadZipFile) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=str(e),
                metadata={"archive": str(archive), "member": member},
            )

        logger.debug("Extracted %s from %s to %s", member, archive, dest)
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Extracted {member} to {dest}",
            metadata={"archive": str(archive), "member": member, "path": str(dest)},
        )


def _matches(name: str, member: str) -> bool:
    return name == member or name.rsplit("/", 1)[-1] == member


def _extract_tar(archive: Path, member: str, dest: Path) -> None:
    with tarfile.open(archive) as tar:
        for info in tar.getmembers():
            if info.isfile() and _matches(info.name, member):
                src = tar.extractfile(info)
                if src is None:
                    break
                with src, dest.open("wb") as out:
                    shutil.copyfileobj(src, out)
                dest.chmod(info.mode & 0o777 or 0o644)
                return
    raise ArchiveError(f"'{member}' not found in {archive}")


def _extract_zip(archive: Path, member: str, dest: Path) -> None:
    with zipfile.ZipFile(archive) as zf:
        for name in zf.namelist():
            if not name.endswith("/") and _matches(name, member):
                with zf.open(name) as src, dest.open("wb") as out:
                    shutil.copyfileobj(src, out)
                return
    raise ArchiveError(f"'{member}' not found in {archive}")
