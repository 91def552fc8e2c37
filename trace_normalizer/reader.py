"""
Trace file reader.

Turns a delimited text file into rows of integers:
- encoding detection via charset-normalizer (UTF-8 BOM honoured)
- newline normalization
- delimiter detection
- integer tokenizing, one row per non-blank line
"""

from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import List, Optional, Protocol, Union

from charset_normalizer import from_bytes

from .models import ReadResult
from .rules import COMMENT_PREFIX, INPUT_DELIMITERS

log = logging.getLogger("trace_normalizer.reader")

PathLike = Union[str, Path]

_INT_RE = re.compile(r"^[+-]?\d+$")
_FALLBACK_SPLIT_RE = re.compile(r"[\s,;|]+")


class TraceParseError(ValueError):
    pass


class TraceReader(Protocol):
    def read_input(self, path: PathLike) -> ReadResult:
        ...


def decode_trace_bytes(raw: bytes) -> str:
    detected = None
    match = from_bytes(raw).best()
    if match is not None:
        detected = match.encoding

    decode_used = detected or "utf-8"
    if raw.startswith(b"\xef\xbb\xbf") and decode_used.lower().replace("-", "_") in ("utf_8", "utf8"):
        decode_used = "utf-8-sig"

    try:
        text = raw.decode(decode_used)
    except (LookupError, UnicodeDecodeError):
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            # Last resort: replacement characters never pass the integer check
            text = raw.decode("utf-8", errors="replace")

    return text.replace("\r\n", "\n").replace("\r", "\n")


def detect_delimiter(lines: List[str]) -> Optional[str]:
    """Return the sniffed delimiter, or None when lines should be split on whitespace."""
    sample = "\n".join(lines[:50])
    if not sample:
        return None
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=INPUT_DELIMITERS)
    except csv.Error:
        return None
    # The sniffer happily picks a delimiter that never occurs in one-column files.
    if not any(dialect.delimiter in line for line in lines):
        return None
    return dialect.delimiter


def _data_lines(text: str) -> List[tuple]:
    lines = []
    for number, raw in enumerate(text.split("\n"), start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue
        lines.append((number, line))
    return lines


def parse_trace_text(text: str) -> List[List[int]]:
    numbered = _data_lines(text)
    delimiter = detect_delimiter([line for _, line in numbered])

    rows: List[List[int]] = []
    for number, line in numbered:
        if delimiter is None:
            tokens = _FALLBACK_SPLIT_RE.split(line)
        else:
            tokens = [token.strip() for token in line.split(delimiter)]
        tokens = [token for token in tokens if token]
        for token in tokens:
            if not _INT_RE.match(token):
                raise TraceParseError(f"Line {number}: not an integer: {token!r}")
        rows.append([int(token) for token in tokens])
    return rows


class DelimitedTraceReader:
    def read_input(self, path: PathLike) -> ReadResult:
        try:
            raw = Path(path).read_bytes()
        except OSError as exc:
            log.warning("Failed to read %s: %s", path, exc)
            return ReadResult(success=False, error=str(exc))

        try:
            rows = parse_trace_text(decode_trace_bytes(raw))
        except TraceParseError as exc:
            log.warning("Failed to parse %s: %s", path, exc)
            return ReadResult(success=False, error=str(exc))

        return ReadResult(success=True, data=rows)
