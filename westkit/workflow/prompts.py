"""User prompt boundary.

The core only needs four abstract interactions -- pick one, pick many, type
text, pick a folder.  Every call returns ``None`` when the user cancels; the
calling operation turns that into ``OperationCancelledError``.

``ConsolePrompt`` is the terminal implementation used by the CLI.  Blocking
click prompts run in a worker thread so the event loop stays free while the
user thinks.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import click
from anyio import to_thread
from pydantic import BaseModel


class PromptSpec(BaseModel):
    """Free-text prompt description."""

    prompt: str
    placeholder: str | None = None
    default: str | None = None


@runtime_checkable
class UserPrompt(Protocol):
    async def select_one(self, title: str, options: Sequence[str]) -> str | None: ...

    async def select_many(self, title: str, options: Sequence[str]) -> list[str] | None: ...

    async def text(self, spec: PromptSpec) -> str | None: ...

    async def select_folder(self, title: str) -> Path | None: ...


class ConsolePrompt:
    """Numbered-menu prompts on the terminal.

    An empty answer (or EOF / Ctrl-C) counts as cancellation; anything that
    is not an option is rejected and asked again.
    """

    async def select_one(self, title: str, options: Sequence[str]) -> str | None:
        return await to_thread.run_sync(self._select_one, title, list(options))

    async def select_many(self, title: str, options: Sequence[str]) -> list[str] | None:
        return await to_thread.run_sync(self._select_many, title, list(options))

    async def text(self, spec: PromptSpec) -> str | None:
        return await to_thread.run_sync(self._text, spec)

    async def select_folder(self, title: str) -> Path | None:
        raw = await self.text(PromptSpec(prompt=title, placeholder="path to folder"))
        if not raw:
            return None
        return Path(raw).expanduser()

    # -- Blocking helpers (worker thread) --------------------------------------

    @staticmethod
    def _menu(title: str, options: list[str]) -> None:
        click.echo(title)
        for index, option in enumerate(options, start=1):
            click.echo(f"  {index:>3}) {option}")

    def _select_one(self, title: str, options: list[str]) -> str | None:
        if not options:
            return None
        self._menu(title, options)
        while True:
            try:
                choice = click.prompt("Choice", default="", show_default=False, type=str).strip()
            except click.Abort:
                return None
            if not choice:
                return None
            resolved = _resolve(choice, options)
            if resolved is not None:
                return resolved
            _reject(choice, options)

    def _select_many(self, title: str, options: list[str]) -> list[str] | None:
        if not options:
            return None
        self._menu(title, options)
        while True:
            try:
                raw = click.prompt("Choices (comma separated)", default="", show_default=False, type=str)
            except click.Abort:
                return None
            tokens = [token.strip() for token in raw.split(",") if token.strip()]
            if not tokens:
                return None
            invalid = [token for token in tokens if _resolve(token, options) is None]
            if invalid:
                _reject(", ".join(invalid), options)
                continue
            return list(dict.fromkeys(_resolve(token, options) for token in tokens))

    @staticmethod
    def _text(spec: PromptSpec) -> str | None:
        label = spec.prompt
        if spec.placeholder:
            label += f" ({spec.placeholder})"
        try:
            value = click.prompt(label, default=spec.default or "", show_default=bool(spec.default), type=str)
        except click.Abort:
            return None
        return value or None


def _resolve(token: str, options: list[str]) -> str | None:
    """Accept either a 1-based index or an exact option label."""
    if not token:
        return None
    if token.isdigit():
        index = int(token) - 1
        return options[index] if 0 <= index < len(options) else None
    return token if token in options else None


def _reject(answer: str, options: list[str]) -> None:
    click.echo(f"'{answer}' is not an option; enter 1-{len(options)}, a label, or nothing to cancel.", err=True)
