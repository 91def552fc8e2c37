"""
Trace normalization.

Scales the first N columns of every row by a per-column delta, rounds to the
nearest integer (ties to even) and writes the rows back comma-joined. Columns
past N are dropped.

A file with a row shorter than N stops being written at that row; the rest of
the batch carries on.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, TextIO, Union

from .models import (
    FileReport,
    FileStatus,
    ProcessReport,
    TraceConfig,
    WriteMode,
    WritePolicy,
)
from .reader import TraceReader, decode_trace_bytes, parse_trace_text
from .rules import OUTPUT_DELIMITER, OUTPUT_ENCODING, OUTPUT_NEWLINE, ROUNDING

log = logging.getLogger("trace_normalizer.process")

PathLike = Union[str, Path]


class InvalidArgumentError(ValueError):
    pass


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def scale_row(row: Sequence[int], delta: Sequence[float], num_columns: int) -> List[int]:
    """Return round(delta[i] * row[i]) for the first num_columns columns."""
    return [round(delta[i] * row[i]) for i in range(num_columns)]


def format_row(values: Iterable[int]) -> str:
    return OUTPUT_DELIMITER.join(str(value) for value in values)


def _short_row_message(row: Sequence[int], num_columns: int) -> str:
    return (
        f"Invalid. File columns = {len(row)} and columns = {num_columns}. "
        "Too many columns specified, or too few in file."
    )


def resolve_path_specification(spec: str) -> List[Path]:
    """
    Expand "dir/pattern" into the matching files, sorted by name.

    Raises FileNotFoundError when the directory does not exist and ValueError
    when the pattern part is empty.
    """
    directory = os.path.dirname(spec) or "."
    pattern = os.path.basename(spec)
    if not pattern:
        raise ValueError(f"No file pattern in {spec!r}")
    base = Path(directory)
    if not base.is_dir():
        raise FileNotFoundError(f"Directory not found: {directory}")
    return sorted((p for p in base.glob(pattern) if p.is_file()), key=lambda p: p.name)


@contextmanager
def _open_output(path: Path, atomic: bool) -> Iterator[TextIO]:
    if not atomic:
        with open(path, "w", encoding=OUTPUT_ENCODING, newline="") as handle:
            yield handle
        return

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding=OUTPUT_ENCODING, newline="") as handle:
            yield handle
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class TraceProcessor:
    def __init__(
        self,
        reader: TraceReader,
        config: TraceConfig,
        policy: Optional[WritePolicy] = None,
    ) -> None:
        self._reader = reader
        self._config = config
        self._policy = policy or WritePolicy()

    @property
    def config(self) -> TraceConfig:
        return self._config

    def process(self, output_folder: Optional[PathLike], path_specifications: Optional[Iterable[str]]) -> ProcessReport:
        """
        Scale every file named or matched by path_specifications.

        Each specification is either an existing file or "directory/glob".
        An inconsistent config aborts the run before any file is touched and
        is returned in the report rather than raised.
        """
        report = ProcessReport()
        config = self._config
        if not config.is_consistent:
            message = f"Invalid. {config.problem} Cannot continue."
            log.error(message)
            report.config_error = message
            return report

        log.info("Reading trace files")
        if path_specifications is None:
            raise InvalidArgumentError("path_specifications must not be None")
        if output_folder is None:
            raise InvalidArgumentError("output_folder must not be None")

        Path(output_folder).mkdir(parents=True, exist_ok=True)

        claimed: Set[Path] = set()
        for spec in path_specifications:
            if Path(spec).is_file():
                report.add(self._process_file(Path(spec), output_folder, claimed))
                continue

            try:
                files = resolve_path_specification(spec)
            except (FileNotFoundError, ValueError) as exc:
                log.warning("Skipping %s: %s", spec, exc)
                report.unresolved.append(spec)
                continue

            for file in files:
                report.add(self._process_file(file, output_folder, claimed))

        return report

    def read_files(
        self,
        files: Optional[Iterable[PathLike]],
        output_folder: Optional[PathLike] = None,
    ) -> List[FileReport]:
        if files is None:
            raise InvalidArgumentError("files must not be None")
        if self._policy.mode is WriteMode.OUTPUT_FOLDER and output_folder is None:
            raise InvalidArgumentError("output_folder is required when writing to an output folder")
        claimed: Set[Path] = set()
        return [self._process_file(Path(file), output_folder, claimed) for file in files]

    def _output_path(self, input_file: Path, output_folder: Optional[PathLike]) -> Path:
        if self._policy.mode is WriteMode.OUTPUT_FOLDER:
            return Path(output_folder) / input_file.name
        return input_file.parent / input_file.name

    def _process_file(self, input_file: Path, output_folder: Optional[PathLike], claimed: Set[Path]) -> FileReport:
        output_file = self._output_path(input_file, output_folder)
        # Only output-folder mode can map two inputs onto one output.
        key = output_file.resolve()
        if self._policy.mode is WriteMode.OUTPUT_FOLDER and key in claimed:
            message = f"{output_file} was already written in this run"
            log.warning("Skipping %s: %s", input_file, message)
            return FileReport(
                input_path=str(input_file),
                output_path=str(output_file),
                status=FileStatus.OUTPUT_CONFLICT,
                message=message,
            )

        result = self._reader.read_input(input_file)
        if not result.success:
            return FileReport(
                input_path=str(input_file),
                status=FileStatus.READ_FAILED,
                message=result.error,
            )
        claimed.add(key)
        return self._write_trace_output(input_file, result.data, output_file)

    def _write_trace_output(self, input_file: Path, rows: List[List[int]], output_file: Path) -> FileReport:
        num_columns = self._config.num_columns
        delta = self._config.delta
        written = 0

        log.info("Writing: %s", output_file)
        with _open_output(output_file, self._policy.atomic) as stream:
            for row in rows:
                if len(row) < num_columns:
                    message = _short_row_message(row, num_columns)
                    log.warning("%s Skipping rest of %s after %d row(s).", message, input_file, written)
                    return FileReport(
                        input_path=str(input_file),
                        output_path=str(output_file),
                        status=FileStatus.TRUNCATED,
                        rows_written=written,
                        message=message,
                    )
                stream.write(format_row(scale_row(row, delta, num_columns)) + OUTPUT_NEWLINE)
                written += 1

        return FileReport(
            input_path=str(input_file),
            output_path=str(output_file),
            status=FileStatus.WRITTEN,
            rows_written=written,
        )


def scale_trace_bytes(raw: bytes, config: TraceConfig) -> Dict[str, Any]:
    """
    Scale an uploaded trace in memory.
    Returns a dict matching the API's response envelope.
    """
    if not config.is_consistent:
        raise InvalidArgumentError(config.problem)

    rows = parse_trace_text(decode_trace_bytes(raw))
    errors: list[dict] = []
    lines: list[str] = []

    for i, row in enumerate(rows):
        if len(row) < config.num_columns:
            errors.append({
                "row": i + 1,
                "column": None,
                "issue": "row_too_short",
                "value": str(len(row)),
                "action": "output_truncated",
            })
            break
        lines.append(format_row(scale_row(row, config.delta, config.num_columns)) + OUTPUT_NEWLINE)

    normalized = "".join(lines).encode(OUTPUT_ENCODING)
    b64 = base64.b64encode(normalized).decode("ascii")
    return {
        "normalized_trace": {
            "sha256": _sha256_hex(normalized),
            "encoding": OUTPUT_ENCODING,
            "content_b64": b64,
        },
        "report": {
            "summary": {
                "rows": len(rows),
                "columns": config.num_columns,
                "rows_written": len(lines),
                "errors": len(errors),
                "deterministic": True,
            },
            "normalizations": {
                "delta": list(config.delta[: config.num_columns]),
                "rounding": ROUNDING,
                "delimiter": {"output": OUTPUT_DELIMITER},
                "dropped_columns": "columns past the configured count",
            },
            "errors": errors,
        },
    }
