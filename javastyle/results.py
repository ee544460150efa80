from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from rich.console import Console
from rich.table import Table

from .console import RichLogger
from .errors import MALFORMED_SOURCE_RULE_ID
from .models import Severity, Violation

FORMATS = ("text", "json")

EXIT_CLEAN = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2


def sort_violations(violations: Iterable[Violation]) -> List[Violation]:
    return sorted(violations, key=lambda v: v.sort_key())


def at_or_above(violations: Iterable[Violation], threshold: Severity) -> List[Violation]:
    return [v for v in violations if v.severity.rank >= threshold.rank]


def format_violation(v: Violation) -> str:
    return f"{v.path}:{v.line}: [{v.severity.value}] {v.rule_id}: {v.message}"


def summarize(violations: Iterable[Violation]) -> Dict[str, object]:
    by_severity: Dict[str, int] = {s.value: 0 for s in Severity}
    by_rule: Dict[str, int] = {}
    files: set[str] = set()
    total = 0
    for v in violations:
        total += 1
        by_severity[v.severity.value] += 1
        by_rule[v.rule_id] = by_rule.get(v.rule_id, 0) + 1
        files.add(v.path)
    return {
        "total": total,
        "files": len(files),
        "by_severity": by_severity,
        "by_rule": dict(sorted(by_rule.items())),
    }


def render(violations: Iterable[Violation], fmt: str = "text") -> str:
    ordered = sort_violations(violations)
    if fmt == "text":
        return "".join(format_violation(v) + "\n" for v in ordered)
    if fmt == "json":
        payload = {
            "violations": [v.to_dict() for v in ordered],
            "summary": summarize(ordered),
        }
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    raise ValueError(f"Unknown output format '{fmt}' (expected one of: {', '.join(FORMATS)})")


def report(violations: Iterable[Violation], fmt: str = "text", threshold: Severity = Severity.INFO) -> str:
    return render(at_or_above(violations, threshold), fmt)


def exit_status(violations: Iterable[Violation], threshold: Severity = Severity.INFO) -> int:
    status = EXIT_CLEAN
    for v in violations:
        if v.rule_id == MALFORMED_SOURCE_RULE_ID:
            return EXIT_ERROR
        if v.severity.rank >= threshold.rank:
            status = EXIT_VIOLATIONS
    return status


def build_summary_table(violations: Iterable[Violation]) -> Table:
    by_rule: Dict[str, Dict[str, int]] = {}
    for v in violations:
        counts = by_rule.setdefault(v.rule_id, {s.value: 0 for s in Severity})
        counts[v.severity.value] += 1
    table = Table(title="Violations Summary", header_style="bold")
    table.add_column("Rule", style="cyan")
    for s in reversed(list(Severity)):
        table.add_column(s.value.capitalize(), justify="right")
    for rule_id, counts in sorted(by_rule.items()):
        table.add_row(rule_id, *(str(counts[s.value]) for s in reversed(list(Severity))))
    return table


class ViolationStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._violations: List[Violation] = []
        self.files_checked = 0
        self.files_skipped = 0
        self.files_malformed = 0

    def add_file(self, violations: Iterable[Violation], skipped: bool = False, malformed: bool = False) -> None:
        items = list(violations)
        with self._lock:
            self._violations.extend(items)
            if skipped:
                self.files_skipped += 1
            else:
                self.files_checked += 1
            if malformed:
                self.files_malformed += 1

    def violations(self) -> List[Violation]:
        with self._lock:
            return sort_violations(self._violations)

    def summary(self) -> Dict[str, object]:
        summary = summarize(self.violations())
        with self._lock:
            summary["files_checked"] = self.files_checked
            summary["files_skipped"] = self.files_skipped
            summary["files_malformed"] = self.files_malformed
        return summary


class ResultWriter:
    def __init__(self, logger: RichLogger, output: Optional[Path] = None, console: Optional[Console] = None):
        self.logger = logger
        self.output = output
        self.console = console or Console(highlight=False, soft_wrap=True)

    def write(self, rendered: str) -> None:
        if self.output is None:
            self.console.file.write(rendered)
            self.console.file.flush()
            return
        self.output.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output, "w", encoding="utf-8") as f:
            f.write(rendered)
        self.logger.done(f"Report written to: {self.output}")
