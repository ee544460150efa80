from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

OPENERS = {"(": ")", "{": "}", "[": "]"}


def trim_snippet(text: str, max_len: int = 160) -> str:
    value = text.strip()
    if len(value) <= max_len:
        return value
    return value[: max_len - 3] + "..."


@dataclass(frozen=True)
class Comment:
    start: int
    end: int
    text: str


class LineIndex:
    def __init__(self, text: str):
        self._starts = [0]
        for idx, ch in enumerate(text):
            if ch == "\n":
                self._starts.append(idx + 1)

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._starts, offset)


def _blank(segment: str) -> str:
    return "".join(ch if ch == "\n" else " " for ch in segment)


def mask_source(text: str) -> Tuple[str, List[Comment], Optional[int]]:
    """Blank out comments and literals, keeping offsets and newlines.

    Returns the masked text, the comments found, and the offset of an
    unterminated comment or literal (``None`` when everything closes).
    """
    out: List[str] = []
    comments: List[Comment] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            end = text.find("\n", i)
            end = n if end < 0 else end
            comments.append(Comment(i, end, text[i:end]))
            out.append(_blank(text[i:end]))
            i = end
            continue
        if ch == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            if end < 0:
                return "".join(out) + _blank(text[i:]), comments, i
            end += 2
            comments.append(Comment(i, end, text[i:end]))
            out.append(_blank(text[i:end]))
            i = end
            continue
        if text.startswith('"""', i):
            end = text.find('"""', i + 3)
            while end > 0 and text[end - 1] == "\\":
                end = text.find('"""', end + 1)
            if end < 0:
                return "".join(out) + _blank(text[i:]), comments, i
            end += 3
            out.append('"' + _blank(text[i + 1 : end - 1]) + '"')
            i = end
            continue
        if ch in ('"', "'"):
            j = i + 1
            while j < n and text[j] != ch:
                if text[j] == "\\":
                    j += 1
                elif text[j] == "\n":
                    return "".join(out) + _blank(text[i:]), comments, i
                j += 1
            if j >= n:
                return "".join(out) + _blank(text[i:]), comments, i
            out.append(ch + _blank(text[i + 1 : j]) + ch)
            i = j + 1
            continue
        out.append(ch)
        i += 1
    return "".join(out), comments, None


def find_closing(text: str, open_pos: int) -> int:
    """Offset of the bracket closing the one at ``open_pos``, or -1."""
    stack = [OPENERS[text[open_pos]]]
    i = open_pos + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in OPENERS:
            stack.append(OPENERS[ch])
        elif ch in (")", "}", "]"):
            if ch != stack[-1]:
                return -1
            stack.pop()
            if not stack:
                return i
        i += 1
    return -1


def split_top_level(text: str, sep: str = ",") -> List[str]:
    parts: List[str] = []
    depth = 0
    angle = 0
    buf: List[str] = []
    for ch in text:
        if ch in "({[":
            depth += 1
        elif ch in ")}]":
            depth -= 1
        elif ch == "<":
            angle += 1
        elif ch == ">" and angle > 0:
            angle -= 1
        if ch == sep and depth == 0 and angle == 0:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf))
    return parts


def has_blank_line(segment: str) -> bool:
    return segment.count("\n") > 1


def contains_word(text: str, word: str, start: int = 0) -> int:
    """First offset of ``word`` as a whole identifier in ``text``, or -1."""
    pos = text.find(word, start)
    while pos >= 0:
        before = text[pos - 1] if pos > 0 else " "
        after_pos = pos + len(word)
        after = text[after_pos] if after_pos < len(text) else " "
        if not (before.isalnum() or before in "_$.") and not (after.isalnum() or after in "_$"):
            return pos
        pos = text.find(word, pos + 1)
    return -1


def leading_lines(lines: Sequence[str], line_no: int, count: int = 1) -> List[str]:
    first = max(1, line_no - count)
    return [lines[i - 1] for i in range(first, line_no + 1) if 1 <= i <= len(lines)]
