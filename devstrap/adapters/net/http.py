"""
HTTP adapter — release metadata lookups and file downloads.

Two operations cover every network fetch a provisioning run makes:

    release_field   GET a JSON release document, return one field
    download        stream a URL to a local file

No retries, no mirrors. A failed fetch is a failed receipt.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
import urllib.error
import urllib.request
from pathlib import Path

from devstrap import __version__
from devstrap.adapters.base import Adapter, ExecutionContext
from devstrap.core.models.action import Receipt

logger = logging.getLogger(__name__)

_USER_AGENT = f"devstrap/{__version__}"


class HttpAdapter(Adapter):
    """Network fetches.

    Action params:
        operation (str): 'release_field' or 'download'.
        url (str): URL to fetch.
        field (str): JSON field to return (for 'release_field').
        strip_prefix (str): Prefix removed from the field value (e.g. 'v').
        dest (str): Local file to write (for 'download').
        timeout (int): Socket timeout in seconds (default: none).
    """

    @property
    def name(self) -> str:
        return "http"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.operation
        if operation not in ("release_field", "download"):
            return False, f"Unknown operation '{operation}'. Valid: download, release_field"
        if not context.params.get("url"):
            return False, "Missing required param: 'url'"
        if operation == "release_field" and not context.params.get("field"):
            return False, "Missing required param: 'field' for release_field operation"
        if operation == "download" and not context.params.get("dest"):
            return False, "Missing required param: 'dest' for download operation"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        if context.operation == "release_field":
            return self._release_field(context)
        return self._download(context)

    def _open(self, url: str, timeout: int | None, accept: str = "*/*"):
        req = urllib.request.Request(
            url,
            headers={"Accept": accept, "User-Agent": _USER_AGENT},
        )
        if timeout is None:
            return urllib.request.urlopen(req)
        return urllib.request.urlopen(req, timeout=timeout)

    def _release_field(self, ctx: ExecutionContext) -> Receipt:
        url = ctx.params["url"]
        field = ctx.params["field"]
        prefix = ctx.params.get("strip_prefix", "")

        try:
            with self._open(
                url, ctx.params.get("timeout"), accept="application/vnd.github.v3+json"
            ) as resp:
                data = json.loads(resp.read())
        except (urllib.error.URLError, OSError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Failed to fetch release metadata from {url}: {e}",
            )
        except json.JSONDecodeError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Release metadata from {url} is not JSON: {e}",
            )

        value = data.get(field) if isinstance(data, dict) else None
        if not isinstance(value, str) or not value:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Field '{field}' not found in release metadata from {url}",
            )

        if prefix and value.startswith(prefix):
            value = value[len(prefix):]

        logger.debug("Resolved %s.%s = %s", url, field, value)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=value,
            metadata={"url": url, "field": field},
        )

    def _download(self, ctx: ExecutionContext) -> Receipt:
        url = ctx.params["url"]
        dest = Path(ctx.params["dest"])
        start = time.monotonic()

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with self._open(url, ctx.params.get("timeout")) as resp, dest.open("wb") as f:
                shutil.copyfileobj(resp, f)
        except (urllib.error.URLError, OSError) as e:
            dest.unlink(missing_ok=True)
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Download failed for {url}: {e}",
                metadata={"url": url},
            )

        size = dest.stat().st_size
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Downloaded {size} bytes to {dest}",
            duration_ms=int((time.monotonic() - start) * 1000),
            metadata={"url": url, "path": str(dest), "size_bytes": size},
        )
