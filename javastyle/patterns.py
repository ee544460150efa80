from __future__ import annotations

import re

IDENT = r"[A-Za-z_$][A-Za-z0-9_$]*"
QUALIFIED_IDENT = rf"{IDENT}(?:\s*\.\s*{IDENT})*"

UPPER_CAMEL_RX = re.compile(r"^[A-Z][A-Za-z0-9]*$")
LOWER_CAMEL_RX = re.compile(r"^[a-z][A-Za-z0-9]*$")
CONSTANT_RX = re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*$")
ENUM_CONSTANT_RX = re.compile(r"^[A-Z][A-Za-z0-9_]*$")

IDENT_RX = re.compile(IDENT)
ANNOTATION_START_RX = re.compile(rf"@\s*(?!interface\b)({QUALIFIED_IDENT})")
PACKAGE_RX = re.compile(rf"^package\s+({QUALIFIED_IDENT})$")
MODULE_RX = re.compile(rf"^(?:open\s+)?module\s+({QUALIFIED_IDENT})$")
IMPORT_RX = re.compile(rf"^import\s+(static\s+)?({QUALIFIED_IDENT})(\s*\.\s*\*)?$")
TYPE_KEYWORD_RX = re.compile(r"(?<![\w$@])(class|interface|enum|record|@\s*interface)\s+(" + IDENT + r")")

PRIMITIVE_TYPES = frozenset({"boolean", "byte", "char", "short", "int", "long", "float", "double", "void"})

JAVA_KEYWORDS = frozenset(
    {
        "abstract", "assert", "boolean", "break", "byte", "case", "catch", "char", "class", "const",
        "continue", "default", "do", "double", "else", "enum", "extends", "final", "finally", "float",
        "for", "goto", "if", "implements", "import", "instanceof", "int", "interface", "long", "native",
        "new", "package", "private", "protected", "public", "return", "short", "static", "strictfp",
        "super", "switch", "synchronized", "this", "throw", "throws", "transient", "try", "void",
        "volatile", "while", "true", "false", "null", "var", "yield", "record",
    }
)

BROAD_EXCEPTION_TYPES = frozenset({"Exception", "Throwable", "java.lang.Exception", "java.lang.Throwable"})

CATCH_RX = re.compile(r"\bcatch\s*\(")
IF_RX = re.compile(r"\bif\s*\(")
NULL_GUARD_CALL_RX = re.compile(r"\b(?:requireNonNull|requireNonNullElse|checkNotNull|checkArgument|notNull|isTrue)\s*\(")
THROW_RX = re.compile(r"^\{?\s*throw\b")
FAILED_RETURN_RX = re.compile(
    r"^\{?\s*return\b[^;]*\bnew\s+(?:" + IDENT + r"\s*\.\s*)*(?:" + IDENT + r")?(?:Exception|Error)\s*\("
)

LOCAL_TYPE = rf"(?:{QUALIFIED_IDENT})(?:\s*<[^;{{}}()]*>)?(?:\s*\[\s*\])*"

BOUNDARY_MARKER = "lint:boundary"
BOUNDARY_ANNOTATIONS = ("Boundary", "TopLevelBoundary")
NULLABLE_ANNOTATIONS = ("Nullable", "CheckForNull")
