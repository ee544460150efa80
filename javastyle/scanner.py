from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .console import RichLogger
from .engine import evaluate
from .errors import MalformedSourceError, ScanTimeoutError
from .input_sources import InputItem, detect_text_encoding, is_likely_binary
from .models import Violation
from .rules import Rule
from .ruleset import Ruleset
from .structure import scan

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_FILE_KB = 2048


@dataclass
class FileResult:
    path: str
    violations: List[Violation] = field(default_factory=list)
    declarations: int = 0
    skipped: bool = False
    malformed: bool = False


class Scanner:
    def __init__(
        self,
        ruleset: Ruleset,
        logger: RichLogger,
        registry: Optional[Mapping[str, Rule]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_file_kb: int = DEFAULT_MAX_FILE_KB,
    ):
        self.ruleset = ruleset
        self.logger = logger
        self.registry = registry
        self.timeout = timeout
        self.max_file_bytes = max(1, max_file_kb) * 1024

    def lint_text(self, text: str, path: str) -> FileResult:
        deadline = time.monotonic() + self.timeout if self.timeout and self.timeout > 0 else None
        try:
            unit = scan(text, path, deadline=deadline)
            if deadline is not None and time.monotonic() > deadline:
                raise ScanTimeoutError("scan timed out before rules ran", 1)
        except MalformedSourceError as exc:
            self.logger.warn(f"Malformed source {path}: {exc}")
            return FileResult(path=path, violations=[exc.to_violation(path)], malformed=True)
        violations = evaluate(unit, self.ruleset, self.registry)
        self.logger.debug(f"{path}: {len(unit.declarations)} declarations, {len(violations)} violations")
        return FileResult(path=path, violations=violations, declarations=len(unit.declarations))

    def scan_item(self, item: InputItem) -> FileResult:
        if item.size_bytes > self.max_file_bytes:
            self.logger.warn(f"Skipping too-large file ({item.size_bytes} bytes): {item.display_name}")
            return FileResult(path=item.display_name, skipped=True)

        try:
            with item.open_binary() as bf:
                data = bf.read()
        except OSError as e:
            self.logger.warn(f"Failed to read {item.display_name}: {e}")
            return FileResult(path=item.display_name, skipped=True)

        encoding = detect_text_encoding(data[:4])
        if is_likely_binary(data[:4096]) and encoding != "utf-16":
            self.logger.warn(f"Skipping binary file: {item.display_name}")
            return FileResult(path=item.display_name, skipped=True)

        try:
            text = data.decode(encoding)
        except UnicodeDecodeError as e:
            self.logger.warn(f"Skipping undecodable file {item.display_name}: not valid {encoding} at byte {e.start}")
            return FileResult(path=item.display_name, skipped=True)
        return self.lint_text(text, item.display_name)
