"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from javastyle.engine import evaluate
from javastyle.ruleset import Ruleset, resolve_ruleset
from javastyle.structure import scan


# =============================================================================
# SOURCE FIXTURES
# =============================================================================

@pytest.fixture
def java_file(tmp_path):
    """Factory writing a Java source below tmp_path, returns its path."""
    def _write(name, text):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def lint_text():
    """Factory scanning text and evaluating it with the given rule ids (default ruleset when None)."""
    def _lint(text, rules=None, path="Sample.java"):
        ruleset = resolve_ruleset() if rules is None else Ruleset.from_rules(rules)
        return evaluate(scan(text, path), ruleset)
    return _lint


@pytest.fixture
def clean_source():
    """A file every built-in rule accepts."""
    return (
        "package com.example;\n"
        "\n"
        "import java.util.Objects;\n"
        "\n"
        "public final class Greeter {\n"
        "    private final String name;\n"
        "\n"
        "    public Greeter(String name) {\n"
        "        this.name = Objects.requireNonNull(name);\n"
        "    }\n"
        "\n"
        "    public String greet(String other) {\n"
        "        if (other == null) {\n"
        "            throw new IllegalArgumentException(\"other\");\n"
        "        }\n"
        "        String message = name + \" greets \" + other;\n"
        "        return message;\n"
        "    }\n"
        "}\n"
    )


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every test in an empty directory so no pyproject.toml config leaks in."""
    monkeypatch.chdir(tmp_path)
