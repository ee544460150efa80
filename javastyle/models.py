from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str) -> "Severity":
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown severity '{value}' (expected one of: {choices})") from None


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.ERROR: 2}


class Modifier(Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"
    STATIC = "static"
    FINAL = "final"
    ABSTRACT = "abstract"
    SYNCHRONIZED = "synchronized"
    VOLATILE = "volatile"
    TRANSIENT = "transient"
    NATIVE = "native"
    STRICTFP = "strictfp"
    DEFAULT = "default"
    SEALED = "sealed"
    NON_SEALED = "non-sealed"


MODIFIER_KEYWORDS: Dict[str, Modifier] = {m.value: m for m in Modifier}

CONTRADICTORY_MODIFIERS = (
    (Modifier.PUBLIC, Modifier.PRIVATE),
    (Modifier.PUBLIC, Modifier.PROTECTED),
    (Modifier.PROTECTED, Modifier.PRIVATE),
    (Modifier.ABSTRACT, Modifier.FINAL),
    (Modifier.FINAL, Modifier.VOLATILE),
    (Modifier.SEALED, Modifier.NON_SEALED),
    (Modifier.SEALED, Modifier.FINAL),
)


def find_contradiction(modifiers: frozenset[Modifier]) -> Optional[Tuple[Modifier, Modifier]]:
    for first, second in CONTRADICTORY_MODIFIERS:
        if first in modifiers and second in modifiers:
            return first, second
    return None


def annotation_name(text: str) -> str:
    return text.lstrip("@").split("(", 1)[0].strip().rsplit(".", 1)[-1]


class DeclarationKind(Enum):
    TYPE = "type"
    FIELD = "field"
    METHOD = "method"
    IMPORT = "import"


@dataclass(frozen=True)
class Declaration:
    kind: DeclarationKind
    name: str
    modifiers: frozenset[Modifier]
    line: int
    depth: int
    index: int
    parent_index: Optional[int]
    leading_comment: str = ""
    annotations: Tuple[str, ...] = ()

    def has(self, modifier: Modifier) -> bool:
        return modifier in self.modifiers

    @property
    def is_static(self) -> bool:
        return Modifier.STATIC in self.modifiers

    @property
    def is_final(self) -> bool:
        return Modifier.FINAL in self.modifiers

    @property
    def is_public(self) -> bool:
        return Modifier.PUBLIC in self.modifiers

    def has_annotation(self, *names: str) -> bool:
        for text in self.annotations:
            if annotation_name(text) in names:
                return True
        return False


@dataclass(frozen=True)
class TypeDeclaration(Declaration):
    type_kind: str = "class"


@dataclass(frozen=True)
class FieldDeclaration(Declaration):
    field_type: str = ""
    is_enum_constant: bool = False


@dataclass(frozen=True)
class Parameter:
    name: str
    type_name: str
    line: int
    is_final: bool = False
    annotations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MethodDeclaration(Declaration):
    return_type: Optional[str] = None
    parameters: Tuple[Parameter, ...] = ()
    is_constructor: bool = False
    is_initializer: bool = False
    body: Optional[str] = None
    body_line: int = 0


@dataclass(frozen=True)
class ImportDeclaration(Declaration):
    static_import: bool = False
    is_wildcard: bool = False


@dataclass(frozen=True)
class SourceUnit:
    path: str
    text: str
    declarations: Tuple[Declaration, ...]
    package: Optional[str] = None
    lines: Tuple[str, ...] = field(default=(), compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.lines:
            object.__setattr__(self, "lines", tuple(self.text.splitlines()))

    def line_text(self, line_no: int) -> str:
        if 1 <= line_no <= len(self.lines):
            return self.lines[line_no - 1]
        return ""

    def parent_of(self, decl: Declaration) -> Optional[TypeDeclaration]:
        if decl.parent_index is None:
            return None
        parent = self.declarations[decl.parent_index]
        return parent if isinstance(parent, TypeDeclaration) else None

    def children_of(self, decl: Declaration) -> Iterator[Declaration]:
        for child in self.declarations:
            if child.parent_index == decl.index:
                yield child

    def types(self) -> Iterator[TypeDeclaration]:
        return (d for d in self.declarations if isinstance(d, TypeDeclaration))

    def fields(self) -> Iterator[FieldDeclaration]:
        return (d for d in self.declarations if isinstance(d, FieldDeclaration))

    def methods(self) -> Iterator[MethodDeclaration]:
        return (d for d in self.declarations if isinstance(d, MethodDeclaration))

    def imports(self) -> Iterator[ImportDeclaration]:
        return (d for d in self.declarations if isinstance(d, ImportDeclaration))


@dataclass(frozen=True)
class Violation:
    rule_id: str
    severity: Severity
    path: str
    line: int
    message: str
    snippet: str = ""

    def sort_key(self) -> tuple:
        return (self.path, self.line, self.rule_id, -self.severity.rank, self.message)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "path": self.path,
            "line": self.line,
            "severity": self.severity.value,
            "rule_id": self.rule_id,
            "message": self.message,
        }
        if self.snippet:
            payload["snippet"] = self.snippet
        return payload
