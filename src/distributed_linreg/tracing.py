"""Structured events recorded while fitting.

Three kinds of event are produced by a fit:

* ``fit``: ``fit_start`` and ``fit_complete`` from the descent loop.
* ``iteration``: one per global update, with the merged gradient norm.
* ``partition``: one per partition per iteration, with the partition index,
  the rows folded and the time spent summarizing it.
"""

from __future__ import annotations

import csv
import json
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

EVENT_TYPES = ("fit", "iteration", "partition")


class FitTraceCollector:
    """Thread-safe collector for fit, iteration and partition events."""

    _CSV_COLUMNS = [
        "seq",
        "timestamp",
        "event_type",
        "component",
        "action",
        "status",
        "iteration",
        "partition",
        "rows",
        "gradient_norm",
        "duration_ms",
        "details",
    ]

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []
        self._next_seq = 1
        self._lock = threading.Lock()
        self._live_sink: Callable[[dict[str, Any]], None] | None = None

    def set_live_sink(self, sink: Callable[[dict[str, Any]], None] | None) -> None:
        """Set optional callback to stream events as they are recorded."""
        with self._lock:
            self._live_sink = sink

    def log(
        self,
        *,
        event_type: str,
        component: str,
        action: str,
        status: str = "ok",
        iteration: int | None = None,
        partition: int | None = None,
        rows: int | None = None,
        gradient_norm: float | None = None,
        duration_ms: float | None = None,
        details: dict[str, Any] | str | None = None,
    ) -> None:
        """Record one event. ``event_type`` must be one of :data:`EVENT_TYPES`."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown trace event type '{event_type}'.")
        event = {
            "event_type": event_type,
            "component": component,
            "action": action,
            "status": status,
            "iteration": _blank(iteration),
            "partition": _blank(partition),
            "rows": _blank(rows),
            "gradient_norm": _blank(gradient_norm),
            "duration_ms": "" if duration_ms is None else round(duration_ms, 3),
            "details": _serialize_details(details),
        }
        with self._lock:
            event = {
                "seq": self._next_seq,
                "timestamp": datetime.now(UTC).isoformat(),
                **event,
            }
            self._events.append(event)
            self._next_seq += 1
            sink = self._live_sink
            event_copy = dict(event)
        if sink is not None:
            try:
                sink(event_copy)
            except Exception:
                # A broken live sink must not abort a fit.
                pass

    def events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        """Return a shallow copy of collected events, optionally filtered by type."""
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [event for event in self._events if event["event_type"] == event_type]

    def gradient_history(self) -> list[tuple[int, float]]:
        """``(iteration, gradient_norm)`` for every recorded update, in order."""
        return [
            (event["iteration"], event["gradient_norm"]) for event in self.events("iteration")
        ]

    def partition_stats(self) -> dict[int, dict[str, Any]]:
        """Per-partition rows folded per iteration and mean summarize time in ms."""
        grouped: dict[int, list[dict[str, Any]]] = {}
        for event in self.events("partition"):
            grouped.setdefault(event["partition"], []).append(event)
        stats: dict[int, dict[str, Any]] = {}
        for index in sorted(grouped):
            entries = grouped[index]
            durations = [entry["duration_ms"] for entry in entries if entry["duration_ms"] != ""]
            stats[index] = {
                "rows": entries[-1]["rows"],
                "summaries": len(entries),
                "mean_duration_ms": sum(durations) / len(durations) if durations else 0.0,
            }
        return stats

    def write_json(self, path: Path) -> None:
        """Write trace events as JSON array."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self.events(), indent=2, sort_keys=False)
        path.write_text(payload + "\n", encoding="utf-8")

    def write_csv(self, path: Path) -> None:
        """Write trace events as CSV rows."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as file_obj:
            writer = csv.DictWriter(file_obj, fieldnames=self._CSV_COLUMNS)
            writer.writeheader()
            for event in self.events():
                writer.writerow({key: event.get(key, "") for key in self._CSV_COLUMNS})


def _blank(value: int | float | None) -> int | float | str:
    return "" if value is None else value


def _serialize_details(details: dict[str, Any] | str | None) -> str:
    if details is None:
        return ""
    if isinstance(details, str):
        return details
    return json.dumps(details, sort_keys=True, default=str)
