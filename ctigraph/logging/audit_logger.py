"""AuditLogger — subscribes to the EventBus and keeps a persistent audit trail."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ctigraph.events.bus import Event, EventBus, EventType
from ctigraph.logging.cleanup import cleanup_old_sessions
from ctigraph.logging.writer import JsonlWriter, TextWriter


def _ts() -> str:
    return datetime.now(UTC).strftime("%H:%M:%S")


class AuditLogger:
    """Persistent event log for one session (typically one CLI invocation).

    Creates ``<log_dir>/YYYYMMDD_HHMMSS_<label>/`` and writes:
    - ``events.jsonl`` — one JSON object per event
    - ``audit.log`` — formatted human-readable lines

    Bus handlers are synchronous and only queue records; they reach disk on
    :meth:`flush` or :meth:`close`.
    """

    def __init__(
        self,
        log_dir: Path,
        label: str,
        bus: EventBus,
        *,
        jsonl: bool = True,
        human_readable: bool = True,
        max_sessions: int = 50,
    ) -> None:
        stamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        safe_label = label.replace(":", "_").replace("/", "_") or "session"
        self._session_dir = log_dir / f"{stamp}_{safe_label}"
        self._session_dir.mkdir(parents=True, exist_ok=True)
        cleanup_old_sessions(log_dir, max_sessions)

        self._jsonl = JsonlWriter(self._session_dir / "events.jsonl") if jsonl else None
        self._text = TextWriter(self._session_dir / "audit.log") if human_readable else None
        self._records: list[dict[str, Any]] = []
        self._lines: list[str] = []
        self._subscribe(bus)

    async def open(self) -> None:
        if self._jsonl is not None:
            await self._jsonl.open()
        if self._text is not None:
            await self._text.open()

    @property
    def session_dir(self) -> Path:
        return self._session_dir

    @property
    def pending(self) -> int:
        return len(self._records) + len(self._lines)

    # -- Event subscriptions -------------------------------------------------

    def _subscribe(self, bus: EventBus) -> None:
        bus.subscribe(EventType.EXTRACTION_COMPLETED, self._on_extraction_completed)
        bus.subscribe(EventType.EXTRACTION_FAILED, self._on_extraction_failed)
        bus.subscribe(EventType.FEEDBACK_SUBMITTED, self._on_feedback_submitted)
        bus.subscribe(EventType.THRESHOLD_ADJUSTED, self._on_threshold_adjusted)
        bus.subscribe(EventType.STORE_FAILED, self._on_store_failed)

    # -- Handlers ------------------------------------------------------------

    def _on_extraction_completed(self, event: Event) -> None:
        d = event.data
        self._record(event)
        self._line(
            "EXTRACT",
            f"{d.get('entities_found', 0)} entities, {d.get('relations_found', 0)} relations "
            f"from {d.get('text_length', 0)} chars "
            f"({d.get('extraction_method', '?')}, {d.get('processing_time', 0.0):.3f}s)",
        )

    def _on_extraction_failed(self, event: Event) -> None:
        self._record(event)
        self._line("ERROR", f"Extraction failed: {event.data.get('error', '')}")

    def _on_feedback_submitted(self, event: Event) -> None:
        d = event.data
        self._record(event)
        user = d.get("user_id") or "anonymous"
        self._line(
            "FEEDBACK",
            f"{d.get('extraction_id', '')}: {d.get('corrections', 0)} corrections, "
            f"{d.get('deletions', 0)} deletions by {user}",
        )

    def _on_threshold_adjusted(self, event: Event) -> None:
        d = event.data
        self._record(event)
        self._line("THRESHOLD", f"{d.get('old', 0.0):.2f} -> {d.get('new', 0.0):.2f}")

    def _on_store_failed(self, event: Event) -> None:
        self._record(event)
        self._line("STORE", f"Persist failed: {event.data.get('error', '')}")

    # -- Write helpers -------------------------------------------------------

    def _record(self, event: Event) -> None:
        if self._jsonl is None:
            return
        record: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(event.timestamp, UTC).isoformat(),
            "event_type": event.type.name,
        }
        record.update(event.data)
        self._records.append(record)

    def _line(self, tag: str, message: str) -> None:
        if self._text is None:
            return
        self._lines.append(f"[{_ts()}] [{tag}] {message}")

    async def flush(self) -> None:
        """Write queued records to disk."""
        records, self._records = self._records, []
        lines, self._lines = self._lines, []
        if self._jsonl is not None:
            for record in records:
                await self._jsonl.write(record)
        if self._text is not None:
            for line in lines:
                await self._text.write(line)

    async def close(self) -> None:
        await self.flush()
        if self._jsonl is not None:
            await self._jsonl.close()
        if self._text is not None:
            await self._text.close()
