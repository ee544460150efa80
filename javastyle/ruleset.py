from __future__ import annotations

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import RulesetError, UnknownRuleError
from .models import Severity
from .rules import RULES_BY_ID, Rule

DEFAULT_RULESET = "default"
CONFIG_SECTION = "javastyle"
PYPROJECT_NAME = "pyproject.toml"

BUILTIN_RULESETS: Dict[str, Dict[str, object]] = {
    "default": {"rules": {}},
    "strict": {
        "extends": "default",
        "rules": {"final-field": {"severity": "error"}},
    },
    "relaxed": {
        "extends": "default",
        "rules": {"final-field": {"enabled": False}, "null-check": {"enabled": False}},
    },
}


@dataclass(frozen=True)
class RuleSetting:
    enabled: bool
    severity: Severity


@dataclass(frozen=True)
class Ruleset:
    name: str
    settings: Tuple[Tuple[str, RuleSetting], ...]

    def enabled_rules(self) -> List[Tuple[str, Severity]]:
        return [(rule_id, s.severity) for rule_id, s in self.settings if s.enabled]

    def setting(self, rule_id: str) -> RuleSetting:
        for known_id, s in self.settings:
            if known_id == rule_id:
                return s
        raise UnknownRuleError([rule_id], self.name)

    def with_disabled(self, rule_ids: Iterable[str]) -> "Ruleset":
        wanted = set(rule_ids)
        unknown = wanted - {rule_id for rule_id, _ in self.settings}
        if unknown:
            raise UnknownRuleError(unknown, self.name)
        return Ruleset(
            name=self.name,
            settings=tuple(
                (rule_id, replace(s, enabled=False) if rule_id in wanted else s) for rule_id, s in self.settings
            ),
        )

    @classmethod
    def from_rules(
        cls,
        rule_ids: Iterable[str],
        name: str = "custom",
        registry: Optional[Mapping[str, Rule]] = None,
    ) -> "Ruleset":
        registry = RULES_BY_ID if registry is None else registry
        ids = list(rule_ids)
        unknown = [rule_id for rule_id in ids if rule_id not in registry]
        if unknown:
            raise UnknownRuleError(unknown, name)
        return cls(
            name=name,
            settings=tuple((rule_id, RuleSetting(True, registry[rule_id].default_severity)) for rule_id in ids),
        )


def load_config_file(path: Path) -> Dict[str, object]:
    try:
        with open(path, "rb") as handle:
            data = tomllib.load(handle)
    except OSError as exc:
        raise RulesetError(f"Failed to read config file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise RulesetError(f"Invalid TOML in {path}: {exc}") from exc
    if path.name == PYPROJECT_NAME:
        return dict(data.get("tool", {}).get(CONFIG_SECTION, {}) or {})
    return data


def find_pyproject_config(start: Optional[Path] = None) -> Tuple[Dict[str, object], Optional[Path]]:
    current = (start or Path.cwd()).resolve()
    for folder in (current, *current.parents):
        candidate = folder / PYPROJECT_NAME
        if not candidate.is_file():
            continue
        config = load_config_file(candidate)
        if config:
            return config, candidate
    return {}, None


def available_rulesets(config: Optional[Mapping[str, object]] = None) -> Dict[str, Mapping[str, object]]:
    rulesets: Dict[str, Mapping[str, object]] = dict(BUILTIN_RULESETS)
    custom = (config or {}).get("rulesets", {})
    if not isinstance(custom, Mapping):
        raise RulesetError("'rulesets' must be a table of ruleset definitions")
    for name, definition in custom.items():
        if not isinstance(definition, Mapping):
            raise RulesetError(f"Ruleset '{name}' must be a table")
        rulesets[name] = definition
    return rulesets


def _parse_setting(ruleset: str, rule_id: str, raw: object, base: RuleSetting) -> RuleSetting:
    if isinstance(raw, bool):
        return replace(base, enabled=raw)
    if isinstance(raw, str):
        raw = {"severity": raw}
    if not isinstance(raw, Mapping):
        raise RulesetError(f"Ruleset '{ruleset}': setting for '{rule_id}' must be a table, bool or severity")
    unknown_keys = set(raw) - {"enabled", "severity"}
    if unknown_keys:
        raise RulesetError(f"Ruleset '{ruleset}': unknown key(s) for '{rule_id}': {', '.join(sorted(unknown_keys))}")
    setting = base
    if "enabled" in raw:
        if not isinstance(raw["enabled"], bool):
            raise RulesetError(f"Ruleset '{ruleset}': 'enabled' for '{rule_id}' must be true or false")
        setting = replace(setting, enabled=raw["enabled"])
    if "severity" in raw:
        try:
            setting = replace(setting, severity=Severity.parse(str(raw["severity"])))
        except ValueError as exc:
            raise RulesetError(f"Ruleset '{ruleset}': {exc}") from exc
    return setting


def resolve_ruleset(
    name: Optional[str] = None,
    config: Optional[Mapping[str, object]] = None,
    registry: Optional[Mapping[str, Rule]] = None,
) -> Ruleset:
    registry = RULES_BY_ID if registry is None else registry
    config = config or {}
    name = name or str(config.get("ruleset") or DEFAULT_RULESET)
    rulesets = available_rulesets(config)

    chain: List[str] = []
    current: Optional[str] = name
    while current is not None:
        if current in chain:
            raise RulesetError(f"Ruleset inheritance cycle: {' -> '.join(chain + [current])}")
        if current not in rulesets:
            raise RulesetError(f"Unknown ruleset '{current}' (available: {', '.join(sorted(rulesets))})")
        chain.append(current)
        parent = rulesets[current].get("extends")
        current = str(parent) if parent else None

    settings = {rule_id: RuleSetting(True, rule.default_severity) for rule_id, rule in registry.items()}
    for layer in reversed(chain):
        overrides = rulesets[layer].get("rules", {}) or {}
        if not isinstance(overrides, Mapping):
            raise RulesetError(f"Ruleset '{layer}': 'rules' must be a table")
        unknown = [rule_id for rule_id in overrides if rule_id not in registry]
        if unknown:
            raise UnknownRuleError(unknown, layer)
        for rule_id, raw in overrides.items():
            settings[rule_id] = _parse_setting(layer, rule_id, raw, settings[rule_id])

    return Ruleset(name=name, settings=tuple(sorted(settings.items())))
