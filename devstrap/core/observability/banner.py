"""Operator-facing progress banners (stdout, independent of log level)."""

from __future__ import annotations

from collections.abc import Callable

import click

SEPARATOR = "-" * 50

Emitter = Callable[[str], None]


def banner(message: str) -> None:
    """Print ``message`` framed by two separator lines."""
    click.echo(SEPARATOR)
    click.echo(message)
    click.echo(SEPARATOR)


def format_banner(message: str) -> str:
    return f"{SEPARATOR}\n{message}\n{SEPARATOR}"


class BannerRecorder:
    """Collects banner messages instead of printing them."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)
