"""
Tests for rulesets and TOML configuration.
"""

import pytest

from javastyle.errors import RulesetError, UnknownRuleError
from javastyle.models import Severity
from javastyle.rules import RULES_BY_ID
from javastyle.ruleset import (
    Ruleset,
    available_rulesets,
    find_pyproject_config,
    load_config_file,
    resolve_ruleset,
)


def enabled_ids(ruleset):
    return [rule_id for rule_id, _ in ruleset.enabled_rules()]


class TestBuiltinRulesets:
    """Test the built-in rulesets."""

    def test_default_enables_everything(self):
        """default enables every rule at its default severity."""
        ruleset = resolve_ruleset()
        assert ruleset.name == "default"
        assert sorted(enabled_ids(ruleset)) == sorted(RULES_BY_ID)
        for rule_id, severity in ruleset.enabled_rules():
            assert severity is RULES_BY_ID[rule_id].default_severity

    def test_strict(self):
        """strict raises final-field to error and keeps null-check a warning."""
        ruleset = resolve_ruleset("strict")
        assert ruleset.setting("final-field").severity is Severity.ERROR
        assert ruleset.setting("null-check").severity is Severity.WARNING

    def test_relaxed(self):
        """relaxed turns off final-field and null-check."""
        ruleset = resolve_ruleset("relaxed")
        assert "final-field" not in enabled_ids(ruleset)
        assert "null-check" not in enabled_ids(ruleset)
        assert "naming" in enabled_ids(ruleset)

    def test_unknown_ruleset(self):
        """An unknown ruleset name is a configuration error."""
        with pytest.raises(RulesetError) as exc:
            resolve_ruleset("nonexistent")
        assert "nonexistent" in str(exc.value)

    def test_with_disabled(self):
        """with_disabled returns a copy with the rules turned off."""
        base = resolve_ruleset()
        trimmed = base.with_disabled(["generic-catch"])
        assert "generic-catch" in enabled_ids(base)
        assert "generic-catch" not in enabled_ids(trimmed)

    def test_with_disabled_unknown(self):
        """Disabling an unknown id raises UnknownRuleError."""
        with pytest.raises(UnknownRuleError):
            resolve_ruleset().with_disabled(["no-such-rule"])

    def test_from_rules_unknown(self):
        """Building a ruleset from unknown ids raises UnknownRuleError."""
        with pytest.raises(UnknownRuleError) as exc:
            Ruleset.from_rules(["naming", "bogus"])
        assert exc.value.rule_ids == ("bogus",)


class TestConfiguredRulesets:
    """Test rulesets defined in configuration."""

    def test_extends_chain(self):
        """Settings are layered along the extends chain."""
        config = {
            "rulesets": {
                "team": {"extends": "strict", "rules": {"naming": "warning"}},
                "project": {"extends": "team", "rules": {"generic-catch": False}},
            }
        }
        ruleset = resolve_ruleset("project", config)
        assert ruleset.setting("final-field").severity is Severity.ERROR
        assert ruleset.setting("naming").severity is Severity.WARNING
        assert not ruleset.setting("generic-catch").enabled

    def test_default_name_from_config(self):
        """The config can pick the ruleset used when none is named."""
        ruleset = resolve_ruleset(None, {"ruleset": "relaxed"})
        assert ruleset.name == "relaxed"

    def test_cycle(self):
        """An extends cycle is rejected."""
        config = {"rulesets": {"a": {"extends": "b"}, "b": {"extends": "a"}}}
        with pytest.raises(RulesetError) as exc:
            resolve_ruleset("a", config)
        assert "cycle" in str(exc.value)

    def test_unknown_rule_in_config(self):
        """Unknown rule ids in a ruleset are rejected before scanning."""
        config = {"rulesets": {"team": {"rules": {"no-tabs": True}}}}
        with pytest.raises(UnknownRuleError) as exc:
            resolve_ruleset("team", config)
        assert exc.value.rule_ids == ("no-tabs",)

    def test_bad_severity(self):
        """An invalid severity is a configuration error."""
        config = {"rulesets": {"team": {"rules": {"naming": {"severity": "fatal"}}}}}
        with pytest.raises(RulesetError) as exc:
            resolve_ruleset("team", config)
        assert "fatal" in str(exc.value)

    def test_unknown_setting_key(self):
        """Unknown keys in a rule setting are rejected."""
        config = {"rulesets": {"team": {"rules": {"naming": {"level": "error"}}}}}
        with pytest.raises(RulesetError):
            resolve_ruleset("team", config)

    def test_custom_rulesets_listed(self):
        """Custom rulesets are listed next to the built-in ones."""
        names = available_rulesets({"rulesets": {"team": {}}})
        assert {"default", "strict", "relaxed", "team"} <= set(names)


class TestConfigFiles:
    """Test loading TOML configuration files."""

    def test_standalone_file(self, tmp_path):
        """A standalone TOML file keeps its keys at top level."""
        path = tmp_path / "javastyle.toml"
        path.write_text(
            'ruleset = "team"\n'
            "\n"
            "[rulesets.team]\n"
            'extends = "default"\n'
            "\n"
            "[rulesets.team.rules.final-field]\n"
            'severity = "info"\n',
            encoding="utf-8",
        )
        ruleset = resolve_ruleset(None, load_config_file(path))
        assert ruleset.name == "team"
        assert ruleset.setting("final-field").severity is Severity.INFO

    def test_pyproject_section(self, tmp_path):
        """pyproject.toml configuration lives under [tool.javastyle]."""
        (tmp_path / "pyproject.toml").write_text(
            "[project]\n"
            'name = "demo"\n'
            "\n"
            "[tool.javastyle]\n"
            'ruleset = "strict"\n',
            encoding="utf-8",
        )
        nested = tmp_path / "src" / "main"
        nested.mkdir(parents=True)
        config, found = find_pyproject_config(nested)
        assert found == (tmp_path / "pyproject.toml").resolve()
        assert config == {"ruleset": "strict"}

    def test_pyproject_without_section(self, tmp_path):
        """A pyproject.toml without the section yields an empty config."""
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\n', encoding="utf-8")
        assert load_config_file(tmp_path / "pyproject.toml") == {}

    def test_invalid_toml(self, tmp_path):
        """Broken TOML is a configuration error."""
        path = tmp_path / "broken.toml"
        path.write_text("ruleset = \n", encoding="utf-8")
        with pytest.raises(RulesetError):
            load_config_file(path)
