"""
Tests for the javastyle command line.
"""

import json

from javastyle.cli import build_arg_parser, main

GOOD = "public final class Good {\n    private final int value = 1;\n}\n"
MUTABLE = "class Mutable {\n    private String name;\n}\n"
BROKEN = "class Broken {\n    void f() {\n}\n"


class TestArgParser:
    """Test argument parsing."""

    def test_lint_defaults(self):
        """lint defaults to text output, info threshold and a 10 second timeout."""
        args = build_arg_parser().parse_args(["lint", "src"])
        assert args.inputs == ["src"]
        assert args.format == "text"
        assert args.severity_threshold == "info"
        assert args.timeout == 10.0
        assert args.disable == []


class TestLintCommand:
    """Test lint runs end to end."""

    def test_clean_exit_zero(self, java_file, capsys):
        """A clean file exits 0 with an empty report."""
        path = java_file("Good.java", GOOD)
        assert main(["lint", "-q", str(path)]) == 0
        assert capsys.readouterr().out == ""

    def test_violation_exit_one(self, java_file, capsys):
        """Violations are printed one per line and exit 1."""
        path = java_file("Mutable.java", MUTABLE)
        assert main(["lint", "-q", str(path)]) == 1
        out = capsys.readouterr().out
        assert out.startswith(f"{path.as_posix()}:2: [warning] final-field: ")

    def test_module_info_alongside_sources(self, java_file, capsys):
        """A module-info.java next to clean sources does not fail the run."""
        java_file("src/module-info.java", "module com.example {\n    requires java.base;\n    exports com.example;\n}\n")
        java_file("src/com/example/Good.java", "package com.example;\n\n" + GOOD)
        assert main(["lint", "-q", "src"]) == 0
        assert capsys.readouterr().out == ""

    def test_threshold_filters(self, java_file, capsys):
        """Violations below the threshold are neither printed nor fail the run."""
        path = java_file("Mutable.java", MUTABLE)
        assert main(["lint", "-q", "--severity-threshold", "error", str(path)]) == 0
        assert capsys.readouterr().out == ""

    def test_strict_ruleset(self, java_file, capsys):
        """strict raises final-field to error."""
        path = java_file("Mutable.java", MUTABLE)
        assert main(["lint", "-q", "--ruleset", "strict", "--severity-threshold", "error", str(path)]) == 1
        assert "[error] final-field" in capsys.readouterr().out

    def test_disable_rule(self, java_file, capsys):
        """--disable turns a rule off for the run."""
        path = java_file("Mutable.java", MUTABLE)
        assert main(["lint", "-q", "--disable", "final-field", str(path)]) == 0

    def test_json_format(self, java_file, capsys):
        """JSON output is machine readable and ordered."""
        java_file("src/B.java", MUTABLE)
        java_file("src/A.java", "class a {}\n")
        assert main(["lint", "-q", "--format", "json", "--threads", "2", "src"]) == 1
        payload = json.loads(capsys.readouterr().out)
        assert [v["path"] for v in payload["violations"]] == ["src/A.java", "src/B.java"]
        assert payload["summary"]["by_rule"] == {"final-field": 1, "naming": 1}

    def test_malformed_file_exit_two(self, java_file, capsys):
        """A malformed file exits 2 while other files are still reported."""
        java_file("src/Broken.java", BROKEN)
        java_file("src/Mutable.java", MUTABLE)
        assert main(["lint", "-q", "src"]) == 2
        out = capsys.readouterr().out.splitlines()
        assert out == [
            "src/Broken.java:1: [error] malformed-source: unbalanced '{' is never closed",
            "src/Mutable.java:2: [warning] final-field: instance field 'name' should be declared final",
        ]

    def test_output_file(self, java_file, tmp_path, capsys):
        """--output writes the report to a file."""
        path = java_file("Mutable.java", MUTABLE)
        out_file = tmp_path / "out" / "report.txt"
        assert main(["lint", "-q", "--output", str(out_file), str(path)]) == 1
        assert capsys.readouterr().out == ""
        assert "final-field" in out_file.read_text(encoding="utf-8")

    def test_config_file(self, java_file, tmp_path):
        """A --config file can define and select a ruleset."""
        path = java_file("Mutable.java", MUTABLE)
        config = tmp_path / "javastyle.toml"
        config.write_text(
            'ruleset = "lenient"\n[rulesets.lenient]\nextends = "relaxed"\n',
            encoding="utf-8",
        )
        assert main(["lint", "-q", "--config", str(config), str(path)]) == 0

    def test_pyproject_config(self, java_file, tmp_path):
        """[tool.javastyle] in pyproject.toml is picked up from the working directory."""
        path = java_file("Mutable.java", MUTABLE)
        (tmp_path / "pyproject.toml").write_text(
            '[tool.javastyle.rulesets.default.rules]\n"final-field" = false\n',
            encoding="utf-8",
        )
        assert main(["lint", "-q", str(path)]) == 0


class TestLintErrors:
    """Test invocation errors exit 2 before scanning."""

    def test_unknown_ruleset(self, java_file, capsys):
        """An unknown ruleset exits 2."""
        path = java_file("Good.java", GOOD)
        assert main(["lint", "--ruleset", "bogus", str(path)]) == 2
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "bogus" in captured.err

    def test_unknown_disabled_rule(self, java_file):
        """Disabling an unknown rule exits 2."""
        path = java_file("Good.java", GOOD)
        assert main(["lint", "--disable", "no-tabs", str(path)]) == 2

    def test_missing_config(self, java_file, tmp_path):
        """A missing --config file exits 2."""
        path = java_file("Good.java", GOOD)
        assert main(["lint", "--config", str(tmp_path / "none.toml"), str(path)]) == 2

    def test_missing_input(self, tmp_path):
        """A path that does not exist exits 2."""
        assert main(["lint", str(tmp_path / "Nope.java")]) == 2

    def test_no_sources(self, tmp_path):
        """A directory without Java sources exits 2."""
        (tmp_path / "empty").mkdir()
        assert main(["lint", str(tmp_path / "empty")]) == 2


class TestRulesCommand:
    """Test listing rules."""

    def test_lists_rules(self, capsys):
        """rules prints the effective ruleset as a table."""
        assert main(["rules", "--ruleset", "relaxed"]) == 0
        out = capsys.readouterr().out
        assert "Ruleset: relaxed" in out
        assert "naming" in out

    def test_unknown_ruleset(self):
        """An unknown ruleset exits 2."""
        assert main(["rules", "--ruleset", "bogus"]) == 2
