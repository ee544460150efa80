from __future__ import annotations

import bisect
import re
import time
from typing import List, Optional, Tuple

from .errors import MalformedSourceError, ScanTimeoutError
from .models import (
    MODIFIER_KEYWORDS,
    Declaration,
    DeclarationKind,
    FieldDeclaration,
    ImportDeclaration,
    MethodDeclaration,
    Modifier,
    Parameter,
    SourceUnit,
    TypeDeclaration,
    find_contradiction,
)
from .patterns import (
    ANNOTATION_START_RX,
    IDENT,
    IDENT_RX,
    IMPORT_RX,
    JAVA_KEYWORDS,
    MODULE_RX,
    PACKAGE_RX,
    TYPE_KEYWORD_RX,
)
from .text_utils import OPENERS, Comment, LineIndex, find_closing, has_blank_line, mask_source, split_top_level

STATEMENT_RX = re.compile(r"^(?:package|import)\b")
TRAILING_IDENT_RX = re.compile(rf"({IDENT})\s*((?:\[\s*\]\s*)*)$")
WS_RX = re.compile(r"\s*")

TYPE_KINDS = {"class": "class", "interface": "interface", "enum": "enum", "record": "record"}


def scan(text: str, path: str = "<string>", deadline: Optional[float] = None) -> SourceUnit:
    return _StructureScanner(text, path, deadline).run()


class _StructureScanner:
    def __init__(self, text: str, path: str, deadline: Optional[float]):
        self.text = text
        self.path = path
        self.deadline = deadline
        self.index = LineIndex(text)
        self.masked = ""
        self.comments: List[Comment] = []
        self._comment_ends: List[int] = []
        self.declarations: List[Declaration] = []
        self.package: Optional[str] = None

    def run(self) -> SourceUnit:
        masked, comments, unterminated = mask_source(self.text)
        if unterminated is not None:
            raise MalformedSourceError("unterminated comment or literal", self.index.line_of(unterminated))
        self.masked = masked
        self.comments = comments
        self._comment_ends = [c.end for c in comments]
        self._check_deadline(0)
        self._check_balance()
        self._check_deadline(len(masked))
        self._scan_members(0, len(masked), None, 0, None)
        return SourceUnit(
            path=self.path,
            text=self.text,
            declarations=tuple(self.declarations),
            package=self.package,
        )

    def _line(self, offset: int) -> int:
        return self.index.line_of(offset)

    def _check_deadline(self, offset: int) -> None:
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise ScanTimeoutError("scan timed out", self._line(offset))

    def _check_balance(self) -> None:
        stack: List[Tuple[str, int]] = []
        for pos, ch in enumerate(self.masked):
            if ch in OPENERS:
                stack.append((ch, pos))
            elif ch in ")}]":
                if not stack:
                    raise MalformedSourceError(f"unbalanced '{ch}'", self._line(pos))
                opener, open_pos = stack.pop()
                if OPENERS[opener] != ch:
                    raise MalformedSourceError(
                        f"'{ch}' does not close '{opener}' opened on line {self._line(open_pos)}",
                        self._line(pos),
                    )
        if stack:
            opener, open_pos = stack[-1]
            raise MalformedSourceError(f"unbalanced '{opener}' is never closed", self._line(open_pos))

    def _skip_ws(self, pos: int, end: int) -> int:
        m = WS_RX.match(self.masked, pos, end)
        return m.end() if m else pos

    def _closing(self, open_pos: int) -> int:
        close = find_closing(self.masked, open_pos)
        if close < 0:
            raise MalformedSourceError("unbalanced brackets", self._line(open_pos))
        return close

    # -- member level -------------------------------------------------

    def _scan_members(
        self,
        pos: int,
        end: int,
        parent: Optional[TypeDeclaration],
        depth: int,
        type_kind: Optional[str],
    ) -> None:
        if type_kind == "enum":
            pos = self._scan_enum_constants(pos, end, parent, depth)
        while True:
            self._check_deadline(pos)
            pos = self._skip_ws(pos, end)
            if pos >= end:
                return
            if self.masked[pos] == ";":
                pos += 1
                continue
            pos = self._scan_member(pos, end, parent, depth)

    def _read_annotations(self, pos: int, end: int) -> Tuple[int, List[str]]:
        annotations: List[str] = []
        while pos < end and self.masked[pos] == "@":
            m = ANNOTATION_START_RX.match(self.masked, pos, end)
            if not m:
                break
            stop = m.end()
            after = self._skip_ws(stop, end)
            if after < end and self.masked[after] == "(":
                stop = self._closing(after) + 1
            annotations.append(" ".join(self.text[pos:stop].split()))
            pos = self._skip_ws(stop, end)
        return pos, annotations

    def _find_terminator(self, pos: int, end: int) -> Tuple[int, str, int]:
        """Return (header_end, terminator, resume_offset) for a member starting at pos."""
        masked = self.masked
        i = pos
        while i < end:
            ch = masked[i]
            if ch in "([":
                i = self._closing(i) + 1
                continue
            if ch == "{":
                return i, "{", i
            if ch == ";":
                return i, ";", i + 1
            if ch == "}":
                break
            if ch == "=" and masked[i + 1 : i + 2] != "=" and masked[i - 1 : i] not in ("=", "!", "<", ">"):
                j = i + 1
                while j < end:
                    c = masked[j]
                    if c in OPENERS:
                        j = self._closing(j) + 1
                        continue
                    if c == ";":
                        return j, "=", j + 1
                    if c == "}":
                        break
                    j += 1
                break
            i += 1
        raise MalformedSourceError("cannot delimit declaration", self._line(pos))

    def _scan_member(self, pos: int, end: int, parent: Optional[TypeDeclaration], depth: int) -> int:
        chunk_start = pos
        pos, annotations = self._read_annotations(pos, end)
        if pos >= end:
            raise MalformedSourceError("annotation without declaration", self._line(chunk_start))
        header_end, terminator, resume = self._find_terminator(pos, end)
        header = self.masked[pos:header_end]
        stripped = header.strip()
        comment = self._leading_comment(chunk_start, header_end)
        parent_index = parent.index if parent is not None else None

        if terminator == "{" and stripped in ("", "static"):
            close = self._closing(header_end)
            self._add(
                MethodDeclaration(
                    kind=DeclarationKind.METHOD,
                    name="<clinit>" if stripped == "static" else "<init>",
                    modifiers=frozenset({Modifier.STATIC}) if stripped == "static" else frozenset(),
                    line=self._line(header_end),
                    depth=depth,
                    index=len(self.declarations),
                    parent_index=parent_index,
                    leading_comment=comment,
                    annotations=tuple(annotations),
                    is_initializer=True,
                    body=self.text[header_end + 1 : close],
                    body_line=self._line(header_end),
                )
            )
            return close + 1

        if parent is None and terminator == "{" and MODULE_RX.match(" ".join(stripped.split())):
            # module-info.java holds directives only
            return self._closing(header_end) + 1

        if parent is None and STATEMENT_RX.match(stripped):
            self._scan_package_or_import(pos, stripped, terminator, depth, comment, annotations)
            return resume

        type_match = TYPE_KEYWORD_RX.search(header)
        if terminator == "{" and type_match and self._member_paren(pos, pos + type_match.start()) < 0:
            return self._scan_type(pos, header_end, type_match, parent, depth, comment, annotations)

        paren = self._member_paren(pos, header_end)
        if terminator != "=" and paren >= 0:
            return self._scan_method(pos, paren, header_end, terminator, parent, depth, comment, annotations)

        if (
            terminator == "{"
            and parent is not None
            and parent.type_kind == "record"
            and stripped.split()[-1:] == [parent.name]
        ):
            return self._scan_compact_constructor(pos, header_end, parent, depth, comment, annotations)

        if terminator == "{":
            raise MalformedSourceError("cannot delimit declaration", self._line(pos))
        self._scan_fields(pos, header_end, parent, depth, comment, annotations)
        return resume

    def _member_paren(self, start: int, stop: int) -> int:
        """Offset of the first parenthesis outside annotations and type arguments."""
        angle = 0
        i = start
        while i < stop:
            ch = self.masked[i]
            if ch == "@":
                m = ANNOTATION_START_RX.match(self.masked, i, stop)
                if m:
                    i = self._skip_ws(m.end(), stop)
                    if i < stop and self.masked[i] == "(":
                        i = self._closing(i) + 1
                    continue
            if ch == "<":
                angle += 1
            elif ch == ">" and angle > 0:
                angle -= 1
            elif ch == "(" and angle == 0:
                return i
            i += 1
        return -1

    # -- declarations -------------------------------------------------

    def _add(self, decl: Declaration) -> Declaration:
        self.declarations.append(decl)
        return decl

    def _leading_comment(self, chunk_start: int, header_end: int) -> str:
        parts: List[str] = []
        idx = bisect.bisect_right(self._comment_ends, chunk_start) - 1
        anchor = chunk_start
        while idx >= 0:
            c = self.comments[idx]
            gap = self.masked[c.end : anchor]
            if gap.strip() or has_blank_line(gap) or not self._starts_line(c.start):
                break
            parts.append(c.text)
            anchor = c.start
            idx -= 1
        parts.reverse()
        lo = bisect.bisect_left(self._comment_ends, chunk_start + 1)
        for c in self.comments[lo:]:
            if c.start >= header_end:
                break
            if c.start >= chunk_start:
                parts.append(c.text)
        return "\n".join(parts)

    def _starts_line(self, offset: int) -> bool:
        line_start = self.text.rfind("\n", 0, offset) + 1
        return not self.text[line_start:offset].strip()

    def _split_modifiers(self, start: int, stop: int) -> Tuple[frozenset, int, List[str]]:
        modifiers = set()
        annotations: List[str] = []
        pos = self._skip_ws(start, stop)
        while pos < stop:
            if self.masked[pos] == "@" and not self.masked.startswith("@interface", pos):
                pos, found = self._read_annotations(pos, stop)
                if not found:
                    break
                annotations.extend(found)
                continue
            if self.masked.startswith("non-sealed", pos):
                modifiers.add(Modifier.NON_SEALED)
                pos = self._skip_ws(pos + len("non-sealed"), stop)
                continue
            m = IDENT_RX.match(self.masked, pos, stop)
            if not m or m.group(0) not in MODIFIER_KEYWORDS:
                break
            modifiers.add(MODIFIER_KEYWORDS[m.group(0)])
            pos = self._skip_ws(m.end(), stop)
        frozen = frozenset(modifiers)
        clash = find_contradiction(frozen)
        if clash:
            raise MalformedSourceError(
                f"contradictory modifiers '{clash[0].value}' and '{clash[1].value}'",
                self._line(start),
            )
        return frozen, pos, annotations

    def _scan_package_or_import(
        self,
        pos: int,
        stripped: str,
        terminator: str,
        depth: int,
        comment: str,
        annotations: List[str],
    ) -> None:
        normalized = " ".join(stripped.split())
        if terminator != ";":
            raise MalformedSourceError("cannot delimit package or import statement", self._line(pos))
        pkg = PACKAGE_RX.match(normalized)
        if pkg:
            self.package = pkg.group(1).replace(" ", "")
            return
        imp = IMPORT_RX.match(normalized)
        if not imp:
            raise MalformedSourceError(f"malformed statement '{normalized}'", self._line(pos))
        name = imp.group(2).replace(" ", "")
        self._add(
            ImportDeclaration(
                kind=DeclarationKind.IMPORT,
                name=name + (".*" if imp.group(3) else ""),
                modifiers=frozenset({Modifier.STATIC}) if imp.group(1) else frozenset(),
                line=self._line(pos),
                depth=depth,
                index=len(self.declarations),
                parent_index=None,
                leading_comment=comment,
                annotations=tuple(annotations),
                static_import=bool(imp.group(1)),
                is_wildcard=bool(imp.group(3)),
            )
        )

    def _scan_type(
        self,
        pos: int,
        open_pos: int,
        type_match: re.Match,
        parent: Optional[TypeDeclaration],
        depth: int,
        comment: str,
        annotations: List[str],
    ) -> int:
        modifiers, _, extra = self._split_modifiers(pos, pos + type_match.start())
        keyword = type_match.group(1)
        type_kind = "annotation" if keyword.startswith("@") else TYPE_KINDS[keyword]
        name = type_match.group(2)
        decl = self._add(
            TypeDeclaration(
                kind=DeclarationKind.TYPE,
                name=name,
                modifiers=modifiers,
                line=self._line(pos + type_match.start(2)),
                depth=depth,
                index=len(self.declarations),
                parent_index=parent.index if parent is not None else None,
                leading_comment=comment,
                annotations=tuple(annotations + extra),
                type_kind=type_kind,
            )
        )
        close = self._closing(open_pos)
        self._scan_members(open_pos + 1, close, decl, depth + 1, type_kind)
        return close + 1

    def _scan_enum_constants(self, pos: int, end: int, parent: Optional[TypeDeclaration], depth: int) -> int:
        while True:
            self._check_deadline(pos)
            pos = self._skip_ws(pos, end)
            if pos >= end:
                return end
            if self.masked[pos] == ";":
                return pos + 1
            chunk_start = pos
            pos, annotations = self._read_annotations(pos, end)
            m = IDENT_RX.match(self.masked, pos, end)
            if not m:
                raise MalformedSourceError("cannot delimit enum constant", self._line(pos))
            name_pos = pos
            pos = self._skip_ws(m.end(), end)
            if pos < end and self.masked[pos] == "(":
                pos = self._skip_ws(self._closing(pos) + 1, end)
            if pos < end and self.masked[pos] == "{":
                pos = self._skip_ws(self._closing(pos) + 1, end)
            self._add(
                FieldDeclaration(
                    kind=DeclarationKind.FIELD,
                    name=m.group(0),
                    modifiers=frozenset({Modifier.PUBLIC, Modifier.STATIC, Modifier.FINAL}),
                    line=self._line(name_pos),
                    depth=depth,
                    index=len(self.declarations),
                    parent_index=parent.index if parent is not None else None,
                    leading_comment=self._leading_comment(chunk_start, name_pos),
                    annotations=tuple(annotations),
                    field_type=parent.name if parent is not None else "",
                    is_enum_constant=True,
                )
            )
            if pos >= end:
                return end
            ch = self.masked[pos]
            if ch == ",":
                pos += 1
                continue
            if ch == ";":
                return pos + 1
            raise MalformedSourceError("cannot delimit enum constant", self._line(pos))

    def _scan_method(
        self,
        pos: int,
        paren: int,
        header_end: int,
        terminator: str,
        parent: Optional[TypeDeclaration],
        depth: int,
        comment: str,
        annotations: List[str],
    ) -> int:
        modifiers, rest_pos, extra = self._split_modifiers(pos, paren)
        rest_pos = self._skip_type_parameters(rest_pos, paren)
        before = self.masked[rest_pos:paren]
        m = TRAILING_IDENT_RX.search(before)
        if not m or m.group(1) in JAVA_KEYWORDS:
            raise MalformedSourceError("cannot delimit method declaration", self._line(pos))
        name = m.group(1)
        return_type = " ".join(before[: m.start()].split()) or None
        is_constructor = return_type is None
        if is_constructor and (parent is None or name != parent.name):
            raise MalformedSourceError(f"method '{name}' has no return type", self._line(rest_pos + m.start(1)))
        close_paren = self._closing(paren)
        parameters = self._parse_parameters(paren + 1, close_paren)

        body = None
        body_line = 0
        resume = header_end + 1
        if terminator == "{":
            close = self._closing(header_end)
            body = self.text[header_end + 1 : close]
            body_line = self._line(header_end)
            resume = close + 1
        self._add(
            MethodDeclaration(
                kind=DeclarationKind.METHOD,
                name=name,
                modifiers=modifiers,
                line=self._line(rest_pos + m.start(1)),
                depth=depth,
                index=len(self.declarations),
                parent_index=parent.index if parent is not None else None,
                leading_comment=comment,
                annotations=tuple(annotations + extra),
                return_type=return_type,
                parameters=tuple(parameters),
                is_constructor=is_constructor,
                body=body,
                body_line=body_line,
            )
        )
        return resume

    def _scan_compact_constructor(
        self,
        pos: int,
        header_end: int,
        parent: TypeDeclaration,
        depth: int,
        comment: str,
        annotations: List[str],
    ) -> int:
        modifiers, name_pos, extra = self._split_modifiers(pos, header_end)
        close = self._closing(header_end)
        self._add(
            MethodDeclaration(
                kind=DeclarationKind.METHOD,
                name=parent.name,
                modifiers=modifiers,
                line=self._line(name_pos),
                depth=depth,
                index=len(self.declarations),
                parent_index=parent.index,
                leading_comment=comment,
                annotations=tuple(annotations + extra),
                is_constructor=True,
                body=self.text[header_end + 1 : close],
                body_line=self._line(header_end),
            )
        )
        return close + 1

    def _skip_type_parameters(self, pos: int, stop: int) -> int:
        if pos >= stop or self.masked[pos] != "<":
            return pos
        angle = 0
        for idx in range(pos, stop):
            ch = self.masked[idx]
            if ch == "<":
                angle += 1
            elif ch == ">":
                angle -= 1
                if angle == 0:
                    return self._skip_ws(idx + 1, stop)
        raise MalformedSourceError("unbalanced type parameters", self._line(pos))

    def _parse_parameters(self, start: int, stop: int) -> List[Parameter]:
        params: List[Parameter] = []
        offset = start
        for raw in split_top_level(self.masked[start:stop]):
            part_start = offset
            offset += len(raw) + 1
            if not raw.strip():
                continue
            modifiers, type_pos, annotations = self._split_modifiers(part_start, part_start + len(raw))
            segment = self.masked[type_pos : part_start + len(raw)]
            m = TRAILING_IDENT_RX.search(segment)
            if not m:
                raise MalformedSourceError("cannot delimit parameter", self._line(part_start))
            type_name = " ".join(segment[: m.start()].split())
            if not type_name:
                if m.group(1) == "this":
                    continue
                raise MalformedSourceError(f"parameter '{m.group(1)}' has no type", self._line(part_start))
            if m.group(2):
                type_name += "[]" * m.group(2).count("[")
            params.append(
                Parameter(
                    name=m.group(1),
                    type_name=type_name,
                    line=self._line(type_pos + m.start(1)),
                    is_final=Modifier.FINAL in modifiers,
                    annotations=tuple(annotations),
                )
            )
        return params

    def _scan_fields(
        self,
        pos: int,
        stop: int,
        parent: Optional[TypeDeclaration],
        depth: int,
        comment: str,
        annotations: List[str],
    ) -> None:
        if parent is None:
            raise MalformedSourceError("declaration outside of a type", self._line(pos))
        modifiers, type_pos, extra = self._split_modifiers(pos, stop)
        if parent.type_kind in ("interface", "annotation"):
            modifiers = modifiers | {Modifier.PUBLIC, Modifier.STATIC, Modifier.FINAL}
        field_type = ""
        offset = type_pos
        for idx, raw in enumerate(split_top_level(self.masked[type_pos:stop])):
            part_start = offset
            offset += len(raw) + 1
            declarator = split_top_level(raw, "=")[0]
            m = TRAILING_IDENT_RX.search(declarator)
            if not m or m.group(1) in JAVA_KEYWORDS:
                raise MalformedSourceError("cannot delimit field declaration", self._line(part_start))
            if idx == 0:
                field_type = " ".join(declarator[: m.start()].split())
                if not field_type:
                    raise MalformedSourceError(f"field '{m.group(1)}' has no type", self._line(part_start))
            elif declarator[: m.start()].strip():
                raise MalformedSourceError("cannot delimit field declaration", self._line(part_start))
            self._add(
                FieldDeclaration(
                    kind=DeclarationKind.FIELD,
                    name=m.group(1),
                    modifiers=modifiers,
                    line=self._line(part_start + m.start(1)),
                    depth=depth,
                    index=len(self.declarations),
                    parent_index=parent.index,
                    leading_comment=comment,
                    annotations=tuple(annotations + extra),
                    field_type=field_type + "[]" * m.group(2).count("["),
                )
            )
