from __future__ import annotations

import json
import math
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator


@dataclass
class _BatchState:
    kind: str
    start_time: float
    context: dict[str, Any] = field(default_factory=dict)
    section_totals_ms: dict[str, float] = field(default_factory=dict)


class GenerationProfiler:
    """Timing for chunk synthesis and pregeneration batches.

    Sections may be recorded from any worker thread; they are attributed to the
    batch open at the time they finish.
    """

    def __init__(self, enabled: bool = True, slow_batch_ms: float = 1000.0, slow_section_ms: float = 250.0, max_slow_records: int = 400) -> None:
        self.enabled = enabled
        self.slow_batch_ms = slow_batch_ms
        self.slow_section_ms = slow_section_ms
        self.max_slow_records = max_slow_records
        self.section_samples_ms: dict[str, list[float]] = defaultdict(list)
        self.batch_samples_ms: dict[str, list[float]] = defaultdict(list)
        self.slow_batches: list[dict[str, Any]] = []
        self.slow_sections: list[dict[str, Any]] = []
        self._active_batch: _BatchState | None = None
        self._lock = threading.Lock()

    def begin_batch(self, kind: str, context: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        if self._active_batch is not None:
            self.end_batch({"warning": "batch_auto_closed"})
        with self._lock:
            self._active_batch = _BatchState(kind=kind, start_time=time.perf_counter(), context=dict(context or {}))

    def end_batch(self, extra_context: dict[str, Any] | None = None) -> float | None:
        if not self.enabled:
            return None
        with self._lock:
            batch = self._active_batch
            if batch is None:
                return None
            self._active_batch = None

            total_ms = (time.perf_counter() - batch.start_time) * 1000.0
            self.batch_samples_ms[f"batch.{batch.kind}"].append(total_ms)

            if total_ms >= self.slow_batch_ms:
                context = dict(batch.context)
                if extra_context:
                    context.update(extra_context)
                self.slow_batches.append(
                    {
                        "kind": batch.kind,
                        "total_ms": total_ms,
                        "context": context,
                        "sections_ms": dict(sorted(batch.section_totals_ms.items(), key=lambda item: item[1], reverse=True)),
                    }
                )
                if len(self.slow_batches) > self.max_slow_records:
                    self.slow_batches.pop(0)
        return total_ms

    @contextmanager
    def section(self, name: str, context: dict[str, Any] | None = None) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_section_ms(name, (time.perf_counter() - start) * 1000.0, context)

    def record_section_ms(self, name: str, duration_ms: float, context: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        with self._lock:
            self.section_samples_ms[name].append(duration_ms)
            if duration_ms >= self.slow_section_ms:
                self.slow_sections.append(
                    {"name": name, "total_ms": duration_ms, "thread": threading.current_thread().name, "context": dict(context or {})}
                )
                if len(self.slow_sections) > self.max_slow_records:
                    self.slow_sections.pop(0)
            batch = self._active_batch
            if batch is None:
                return
            batch.section_totals_ms[name] = batch.section_totals_ms.get(name, 0.0) + duration_ms

    @staticmethod
    def _percentile(values: list[float], p: float) -> float:
        if not values:
            return 0.0
        sorted_values = sorted(values)
        rank = max(0, min(len(sorted_values) - 1, int(math.ceil(len(sorted_values) * p)) - 1))
        return sorted_values[rank]

    def _stats(self, values: list[float]) -> dict[str, float]:
        if not values:
            return {"count": 0.0, "avg_ms": 0.0, "p95_ms": 0.0, "p99_ms": 0.0, "max_ms": 0.0}
        return {
            "count": float(len(values)),
            "avg_ms": sum(values) / len(values),
            "p95_ms": self._percentile(values, 0.95),
            "p99_ms": self._percentile(values, 0.99),
            "max_ms": max(values),
        }

    def section_stats(self, name: str) -> dict[str, float]:
        with self._lock:
            samples = list(self.section_samples_ms.get(name, ()))
        return self._stats(samples)

    @staticmethod
    def clear_previous_reports(output_dir: str | Path = "profiling") -> None:
        out_dir = Path(output_dir)
        if not out_dir.exists():
            return
        for pattern in ("gen_report_*.txt", "gen_report_*.json"):
            for path in out_dir.glob(pattern):
                try:
                    path.unlink()
                except OSError:
                    continue

    def write_report(self, output_dir: str | Path = "profiling") -> tuple[Path, Path] | None:
        if not self.enabled:
            return None

        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        stamp = time.strftime("%Y%m%d_%H%M%S")
        txt_path = out_dir / f"gen_report_{stamp}.txt"
        json_path = out_dir / f"gen_report_{stamp}.json"
        latest_txt = out_dir / "gen_report_latest.txt"
        latest_json = out_dir / "gen_report_latest.json"

        with self._lock:
            section_stats = {name: self._stats(samples) for name, samples in self.section_samples_ms.items()}
            batch_stats = {name: self._stats(samples) for name, samples in self.batch_samples_ms.items()}
            slow_batches = list(self.slow_batches)
            slow_sections = list(self.slow_sections)
        report = {
            "generated_at": time.strftime("%Y-%m-%d %H:%M:%S"),
            "slow_batch_threshold_ms": self.slow_batch_ms,
            "slow_section_threshold_ms": self.slow_section_ms,
            "batch_stats_ms": batch_stats,
            "section_stats_ms": section_stats,
            "slow_batches": slow_batches,
            "slow_sections": slow_sections,
        }

        json_text = json.dumps(report, indent=2)
        json_path.write_text(json_text, encoding="utf-8")
        latest_json.write_text(json_text, encoding="utf-8")

        lines: list[str] = []
        lines.append("Chunk Generation Report")
        lines.append(f"Generated: {report['generated_at']}")
        lines.append(f"Slow batch threshold: {self.slow_batch_ms:.2f} ms")
        lines.append(f"Slow section threshold: {self.slow_section_ms:.2f} ms")
        lines.append("")
        lines.append("Batch Stats")
        for name, stats in sorted(batch_stats.items(), key=lambda item: item[1]["max_ms"], reverse=True):
            lines.append(f"- {name}: count={int(stats['count'])} avg={stats['avg_ms']:.2f}ms max={stats['max_ms']:.2f}ms")

        lines.append("")
        lines.append("Section Stats")
        for name, stats in sorted(section_stats.items(), key=lambda item: item[1]["p99_ms"], reverse=True):
            lines.append(
                f"- {name}: count={int(stats['count'])} avg={stats['avg_ms']:.3f}ms "
                f"p95={stats['p95_ms']:.3f}ms p99={stats['p99_ms']:.3f}ms max={stats['max_ms']:.3f}ms"
            )

        lines.append("")
        lines.append(f"Slow Sections ({len(slow_sections)})")
        for index, record in enumerate(sorted(slow_sections, key=lambda r: r["total_ms"], reverse=True)[:50], start=1):
            lines.append(f"{index}. {record['name']} total={record['total_ms']:.2f}ms thread={record['thread']} context={record['context']}")

        lines.append("")
        lines.append(f"Slow Batches ({len(slow_batches)})")
        for index, batch in enumerate(sorted(slow_batches, key=lambda b: b["total_ms"], reverse=True)[:20], start=1):
            lines.append(f"{index}. {batch['kind']} total={batch['total_ms']:.2f}ms context={batch['context']}")
            for sec_name, sec_ms in list(batch["sections_ms"].items())[:5]:
                lines.append(f"   - {sec_name}: {sec_ms:.2f}ms")

        text = "\n".join(lines) + "\n"
        txt_path.write_text(text, encoding="utf-8")
        latest_txt.write_text(text, encoding="utf-8")
        return txt_path, json_path
