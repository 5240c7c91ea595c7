"""File writers for the audit trail — JSONL and human-readable text."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiofiles


class _AppendWriter:
    """Append-mode text file with per-write flush for crash safety."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._file: Any = None

    @property
    def path(self) -> Path:
        return self._path

    async def open(self) -> None:
        self._file = await aiofiles.open(self._path, mode="a", encoding="utf-8")

    async def _append(self, line: str) -> None:
        if self._file is None:
            return
        await self._file.write(line + "\n")
        await self._file.flush()

    async def close(self) -> None:
        if self._file is not None:
            await self._file.flush()
            await self._file.close()
            self._file = None


class JsonlWriter(_AppendWriter):
    """One JSON object per line."""

    async def write(self, record: dict[str, Any]) -> None:
        await self._append(json.dumps(record, default=str, ensure_ascii=False))


class TextWriter(_AppendWriter):
    async def write(self, line: str) -> None:
        await self._append(line)
