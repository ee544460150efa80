from __future__ import annotations

from dataclasses import replace
from typing import List, Mapping, Optional

from .errors import RuleExecutionError, UnknownRuleError
from .models import SourceUnit, Violation
from .rules import RULES_BY_ID, Rule
from .ruleset import Ruleset


def evaluate(
    unit: SourceUnit,
    ruleset: Ruleset,
    registry: Optional[Mapping[str, Rule]] = None,
) -> List[Violation]:
    registry = RULES_BY_ID if registry is None else registry
    enabled = ruleset.enabled_rules()
    unknown = [rule_id for rule_id, _ in enabled if rule_id not in registry]
    if unknown:
        raise UnknownRuleError(unknown, ruleset.name)

    violations: List[Violation] = []
    for rule_id, severity in enabled:
        try:
            found = registry[rule_id].check(unit)
        except Exception as exc:
            violations.append(RuleExecutionError(rule_id, exc).to_violation(unit.path))
            continue
        violations.extend(v if v.severity is severity else replace(v, severity=severity) for v in found)
    return violations
