from __future__ import annotations

from typing import Iterable, Optional

from .models import Severity, Violation

MALFORMED_SOURCE_RULE_ID = "malformed-source"
RULE_EXECUTION_RULE_ID = "rule-execution"


class JavaStyleError(RuntimeError):
    pass


class MalformedSourceError(JavaStyleError):
    def __init__(self, message: str, line: int = 1):
        self.line = max(1, line)
        self.reason = message
        super().__init__(f"line {self.line}: {message}")

    def to_violation(self, path: str) -> Violation:
        return Violation(
            rule_id=MALFORMED_SOURCE_RULE_ID,
            severity=Severity.ERROR,
            path=path,
            line=self.line,
            message=self.reason,
        )


class ScanTimeoutError(MalformedSourceError):
    pass


class RulesetError(JavaStyleError):
    pass


class UnknownRuleError(RulesetError):
    def __init__(self, rule_ids: Iterable[str], ruleset: Optional[str] = None):
        self.rule_ids = tuple(sorted(set(rule_ids)))
        self.ruleset = ruleset
        where = f" in ruleset '{ruleset}'" if ruleset else ""
        super().__init__(f"Unknown rule id(s){where}: {', '.join(self.rule_ids)}")


class RuleExecutionError(JavaStyleError):
    def __init__(self, rule_id: str, cause: BaseException):
        self.rule_id = rule_id
        self.cause = cause
        super().__init__(f"rule '{rule_id}' failed: {type(cause).__name__}: {cause}")

    def to_violation(self, path: str) -> Violation:
        return Violation(
            rule_id=RULE_EXECUTION_RULE_ID,
            severity=Severity.ERROR,
            path=path,
            line=1,
            message=str(self),
        )
