from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Tuple, Type

from .errors import UnknownRuleError
from .models import (
    Declaration,
    FieldDeclaration,
    MethodDeclaration,
    Modifier,
    Severity,
    SourceUnit,
    TypeDeclaration,
    Violation,
    annotation_name,
)
from .patterns import (
    BOUNDARY_ANNOTATIONS,
    BOUNDARY_MARKER,
    BROAD_EXCEPTION_TYPES,
    CATCH_RX,
    CONSTANT_RX,
    ENUM_CONSTANT_RX,
    FAILED_RETURN_RX,
    IDENT,
    IF_RX,
    JAVA_KEYWORDS,
    LOCAL_TYPE,
    LOWER_CAMEL_RX,
    NULL_GUARD_CALL_RX,
    NULLABLE_ANNOTATIONS,
    PRIMITIVE_TYPES,
    QUALIFIED_IDENT,
    THROW_RX,
    UPPER_CAMEL_RX,
)
from .text_utils import contains_word, find_closing, leading_lines, mask_source, trim_snippet

LOCAL_DECL_RX = re.compile(
    rf"(?:\A|(?<=[;{{}}(]))\s*(?:final\s+|@{QUALIFIED_IDENT}\s+)*({LOCAL_TYPE})\s+({IDENT})\s*(?==(?!=)|;|:|,)"
)
CATCH_NOISE_RX = re.compile(rf"\bfinal\b|@{QUALIFIED_IDENT}")
CATCH_VAR_RX = re.compile(rf"({IDENT})\s*$")
LOCAL_TYPE_EXEMPT = JAVA_KEYWORDS - PRIMITIVE_TYPES - {"var"}
SERIAL_VERSION_UID = "serialVersionUID"


class Rule(ABC):
    id: str = ""
    description: str = ""
    default_severity: Severity = Severity.ERROR
    confidence: str = "high"

    @abstractmethod
    def check(self, unit: SourceUnit) -> List[Violation]:
        ...

    def violation(self, unit: SourceUnit, line: int, message: str) -> Violation:
        return Violation(
            rule_id=self.id,
            severity=self.default_severity,
            path=unit.path,
            line=line,
            message=message,
            snippet=trim_snippet(unit.line_text(line)),
        )


def masked_body(method: MethodDeclaration) -> str:
    if method.body is None:
        return ""
    masked, _, _ = mask_source(method.body)
    return masked


def body_line(method: MethodDeclaration, masked: str, offset: int) -> int:
    return method.body_line + masked.count("\n", 0, offset)


def is_constant(decl: FieldDeclaration) -> bool:
    return decl.is_static and decl.is_final


def iter_locals(method: MethodDeclaration) -> Iterator[Tuple[str, int]]:
    masked = masked_body(method)
    for m in LOCAL_DECL_RX.finditer(masked):
        type_name = m.group(1).split("<", 1)[0].strip()
        if type_name in LOCAL_TYPE_EXEMPT or m.group(2) in JAVA_KEYWORDS:
            continue
        yield m.group(2), body_line(method, masked, m.start(2))


class NamingRule(Rule):
    id = "naming"
    description = (
        "Types and enum constants start upper-case; methods, fields, parameters and locals "
        "start lower-case; static final constants are UPPER_SNAKE_CASE."
    )

    def check(self, unit: SourceUnit) -> List[Violation]:
        out: List[Violation] = []
        for decl in unit.declarations:
            if isinstance(decl, TypeDeclaration):
                if not UPPER_CAMEL_RX.match(decl.name):
                    out.append(self.violation(unit, decl.line, f"type '{decl.name}' should be UpperCamelCase"))
            elif isinstance(decl, FieldDeclaration):
                message = self._field_message(decl)
                if message:
                    out.append(self.violation(unit, decl.line, message))
            elif isinstance(decl, MethodDeclaration):
                out.extend(self._check_method(unit, decl))
        return out

    def _field_message(self, decl: FieldDeclaration) -> str:
        if decl.is_enum_constant:
            if not ENUM_CONSTANT_RX.match(decl.name):
                return f"enum constant '{decl.name}' should start with an upper-case letter"
            return ""
        if is_constant(decl):
            if decl.name == SERIAL_VERSION_UID or CONSTANT_RX.match(decl.name):
                return ""
            return f"constant '{decl.name}' should be UPPER_SNAKE_CASE"
        if not LOWER_CAMEL_RX.match(decl.name):
            return f"field '{decl.name}' should be lowerCamelCase"
        return ""

    def _check_method(self, unit: SourceUnit, method: MethodDeclaration) -> List[Violation]:
        out: List[Violation] = []
        if not (method.is_constructor or method.is_initializer) and not LOWER_CAMEL_RX.match(method.name):
            out.append(self.violation(unit, method.line, f"method '{method.name}' should be lowerCamelCase"))
        for param in method.parameters:
            if not LOWER_CAMEL_RX.match(param.name):
                out.append(self.violation(unit, param.line, f"parameter '{param.name}' should be lowerCamelCase"))
        for name, line in iter_locals(method):
            if not LOWER_CAMEL_RX.match(name):
                out.append(self.violation(unit, line, f"local variable '{name}' should be lowerCamelCase"))
        return out


class FinalFieldRule(Rule):
    id = "final-field"
    description = "Instance fields should be declared final."
    default_severity = Severity.WARNING

    def check(self, unit: SourceUnit) -> List[Violation]:
        out: List[Violation] = []
        for decl in unit.fields():
            if decl.is_enum_constant or decl.is_static or decl.is_final:
                continue
            parent = unit.parent_of(decl)
            if parent is None or parent.type_kind not in ("class", "enum", "record"):
                continue
            out.append(self.violation(unit, decl.line, f"instance field '{decl.name}' should be declared final"))
        return out


class NullCheckRule(Rule):
    id = "null-check"
    description = (
        "Reference parameters of public methods are checked (if ... throw) before first use. "
        "Heuristic, reported with low confidence."
    )
    default_severity = Severity.WARNING
    confidence = "low"

    def check(self, unit: SourceUnit) -> List[Violation]:
        out: List[Violation] = []
        for method in unit.methods():
            if method.body is None or method.is_initializer or not method.parameters:
                continue
            if not self._is_public(unit, method):
                continue
            if method.name == "equals" and len(method.parameters) == 1:
                continue
            masked = masked_body(method)
            for param in method.parameters:
                if param.type_name in PRIMITIVE_TYPES:
                    continue
                if any(annotation_name(a) in NULLABLE_ANNOTATIONS for a in param.annotations):
                    continue
                first_use = contains_word(masked, param.name)
                if first_use < 0 or _is_guarded(masked, first_use):
                    continue
                out.append(
                    self.violation(
                        unit,
                        body_line(method, masked, first_use),
                        f"possible missing null check: parameter '{param.name}' of public "
                        f"{'constructor' if method.is_constructor else 'method'} '{method.name}' "
                        "is used before a fail-fast guard",
                    )
                )
        return out

    def _is_public(self, unit: SourceUnit, method: MethodDeclaration) -> bool:
        if method.is_public:
            return True
        parent = unit.parent_of(method)
        return parent is not None and parent.type_kind == "interface" and not method.has(Modifier.PRIVATE)


def _is_guarded(masked: str, offset: int) -> bool:
    for m in IF_RX.finditer(masked, 0, offset + 1):
        open_pos = m.end() - 1
        close = find_closing(masked, open_pos)
        if close < 0 or not open_pos < offset < close:
            continue
        rest = masked[close + 1 :].lstrip()
        if THROW_RX.match(rest) or FAILED_RETURN_RX.match(rest):
            return True
    for m in NULL_GUARD_CALL_RX.finditer(masked, 0, offset + 1):
        open_pos = m.end() - 1
        close = find_closing(masked, open_pos)
        if close >= 0 and open_pos < offset < close:
            return True
    return False


class GenericCatchRule(Rule):
    id = "generic-catch"
    description = (
        "Catching Exception or Throwable is only allowed at a top-level boundary "
        f"marked with a '{BOUNDARY_MARKER}' comment or @{BOUNDARY_ANNOTATIONS[0]}."
    )

    def check(self, unit: SourceUnit) -> List[Violation]:
        out: List[Violation] = []
        for method in unit.methods():
            if method.body is None or self._is_boundary(unit, method):
                continue
            masked = masked_body(method)
            for m in CATCH_RX.finditer(masked):
                open_pos = m.end() - 1
                close = find_closing(masked, open_pos)
                if close < 0:
                    continue
                broad = [t for t in _caught_types(masked[open_pos + 1 : close]) if t in BROAD_EXCEPTION_TYPES]
                if not broad:
                    continue
                line = body_line(method, masked, m.start())
                if any(BOUNDARY_MARKER in text for text in leading_lines(unit.lines, line)):
                    continue
                out.append(
                    self.violation(
                        unit,
                        line,
                        f"catch of generic '{broad[0]}' in '{method.name}'; catch specific exceptions "
                        "or mark the block as a top-level boundary",
                    )
                )
        return out

    def _is_boundary(self, unit: SourceUnit, method: MethodDeclaration) -> bool:
        decl: Declaration | None = method
        while decl is not None:
            if decl.has_annotation(*BOUNDARY_ANNOTATIONS) or BOUNDARY_MARKER in decl.leading_comment:
                return True
            decl = unit.parent_of(decl)
        return False


def _caught_types(clause: str) -> List[str]:
    cleaned = CATCH_NOISE_RX.sub(" ", clause).strip()
    m = CATCH_VAR_RX.search(cleaned)
    if m:
        cleaned = cleaned[: m.start()]
    return ["".join(part.split()) for part in cleaned.split("|") if part.strip()]


class UtilityClassRule(Rule):
    id = "utility-class"
    description = (
        "Classes with only static members are final, hide their constructor "
        "and hold no mutable static state."
    )

    def check(self, unit: SourceUnit) -> List[Violation]:
        out: List[Violation] = []
        for decl in unit.types():
            if decl.type_kind != "class":
                continue
            children = list(unit.children_of(decl))
            constructors = [c for c in children if isinstance(c, MethodDeclaration) and c.is_constructor]
            members = [
                c
                for c in children
                if isinstance(c, FieldDeclaration)
                or (isinstance(c, MethodDeclaration) and not (c.is_constructor or c.is_initializer))
            ]
            if not members or not all(m.is_static for m in members):
                continue
            if not decl.is_final:
                out.append(self.violation(unit, decl.line, f"utility class '{decl.name}' should be declared final"))
            for ctor in constructors:
                if ctor.is_public:
                    out.append(
                        self.violation(
                            unit, ctor.line, f"utility class '{decl.name}' should not expose a public constructor"
                        )
                    )
            if not constructors and decl.is_public:
                out.append(
                    self.violation(
                        unit,
                        decl.line,
                        f"utility class '{decl.name}' has an implicit public constructor; declare a private one",
                    )
                )
            for member in members:
                if isinstance(member, FieldDeclaration) and not member.is_final:
                    out.append(
                        self.violation(
                            unit,
                            member.line,
                            f"utility class '{decl.name}' holds mutable static state in '{member.name}'",
                        )
                    )
        return out


RULE_CLASSES: List[Type[Rule]] = [
    NamingRule,
    FinalFieldRule,
    NullCheckRule,
    GenericCatchRule,
    UtilityClassRule,
]

RULES_BY_ID: Dict[str, Rule] = {cls.id: cls() for cls in RULE_CLASSES}


def get_rule(rule_id: str) -> Rule:
    try:
        return RULES_BY_ID[rule_id]
    except KeyError:
        raise UnknownRuleError([rule_id]) from None
