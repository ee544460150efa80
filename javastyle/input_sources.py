from __future__ import annotations

import glob
import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from .console import RichLogger

SOURCE_EXTENSIONS = {".java"}
ARCHIVE_EXTENSIONS = {".zip", ".jar"}
GLOB_CHARS = set("*?[")


def detect_text_encoding(sample: bytes) -> str:
    if sample.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if sample.startswith(b"\xff\xfe") or sample.startswith(b"\xfe\xff"):
        return "utf-16"
    return "utf-8"


def is_likely_binary(sample: bytes) -> bool:
    if b"\x00" in sample:
        return True
    if not sample:
        return False
    non_printable = 0
    for b in sample[:2048]:
        if b in (9, 10, 12, 13):
            continue
        if 32 <= b <= 126 or b >= 128:
            continue
        non_printable += 1
    return (non_printable / max(1, min(len(sample), 2048))) > 0.25


@dataclass(frozen=True)
class InputItem:
    display_name: str
    size_bytes: int
    is_zip_member: bool
    file_path: Optional[Path] = None
    zip_path: Optional[Path] = None
    zip_member: Optional[str] = None

    def open_binary(self) -> io.BufferedReader | io.BytesIO:
        if self.is_zip_member:
            assert self.zip_path is not None and self.zip_member is not None
            with zipfile.ZipFile(self.zip_path, "r") as zf:
                with zf.open(self.zip_member, "r") as f:
                    data = f.read()
            return io.BytesIO(data)
        assert self.file_path is not None
        return open(self.file_path, "rb")


def is_source_name(name: str) -> bool:
    return Path(name).suffix.lower() in SOURCE_EXTENSIONS


def _is_input_name(name: str) -> bool:
    return Path(name).suffix.lower() in SOURCE_EXTENSIONS | ARCHIVE_EXTENSIONS


def _iter_archive(archive: Path) -> Iterator[InputItem]:
    with zipfile.ZipFile(archive, "r") as zf:
        for info in zf.infolist():
            if info.is_dir() or not is_source_name(info.filename):
                continue
            yield InputItem(
                display_name=f"{archive.as_posix()}:{info.filename}",
                size_bytes=info.file_size,
                is_zip_member=True,
                zip_path=archive,
                zip_member=info.filename,
            )


def _file_item(path: Path) -> InputItem:
    return InputItem(
        display_name=path.as_posix(),
        size_bytes=path.stat().st_size,
        is_zip_member=False,
        file_path=path,
    )


def iter_input_items(
    input_path: Path,
    follow_symlinks: bool,
    logger: RichLogger,
) -> Iterator[InputItem]:
    if not input_path.exists():
        raise FileNotFoundError(str(input_path))

    if input_path.is_file() and input_path.suffix.lower() in ARCHIVE_EXTENSIONS:
        logger.debug(f"Input is a source archive: {input_path}")
        yield from _iter_archive(input_path)
        return

    if input_path.is_file():
        yield _file_item(input_path)
        return

    for p in sorted(input_path.rglob("*")):
        try:
            if p.is_dir() or not is_source_name(p.name):
                continue
            if (not follow_symlinks) and p.is_symlink():
                continue
            yield _file_item(p)
        except OSError as e:
            logger.warn(f"Skipping unreadable path: {p} ({e})")


def expand_inputs(
    raw_inputs: Iterable[str],
    logger: RichLogger,
    follow_symlinks: bool = False,
) -> Tuple[List[InputItem], List[str]]:
    items: List[InputItem] = []
    missing: List[str] = []
    seen: set[str] = set()
    for raw in raw_inputs:
        value = raw.strip()
        if not value:
            continue
        if GLOB_CHARS & set(value) and not Path(value).exists():
            matches = sorted(glob.glob(value, recursive=True))
            if not matches:
                missing.append(value)
                continue
            paths = [Path(m) for m in matches if Path(m).is_dir() or _is_input_name(m)]
        else:
            paths = [Path(value).expanduser()]
        for path in paths:
            try:
                found = list(iter_input_items(path, follow_symlinks, logger))
            except FileNotFoundError:
                missing.append(value)
                continue
            except zipfile.BadZipFile as exc:
                logger.warn(f"Skipping unreadable archive {path}: {exc}")
                continue
            for item in found:
                if item.display_name in seen:
                    continue
                seen.add(item.display_name)
                items.append(item)
    return items, missing
