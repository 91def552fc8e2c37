from __future__ import annotations

import math
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TraceConfig(BaseModel):
    """
    Scaling configuration shared by every file of a run.

    A delta vector shorter than num_columns, or with non-finite entries, is
    accepted here; the processor reports it as a run-level configuration
    error instead of raising.
    """

    model_config = ConfigDict(frozen=True)

    num_columns: int = Field(ge=0)
    delta: Tuple[float, ...] = ()

    @property
    def problem(self) -> Optional[str]:
        if len(self.delta) < self.num_columns:
            return (
                f"Delta columns = {len(self.delta)} and columns = {self.num_columns}. "
                "Too many columns specified."
            )
        non_finite = [d for d in self.delta[: self.num_columns] if not math.isfinite(d)]
        if non_finite:
            return f"Delta values must be finite, got {non_finite}."
        return None

    @property
    def is_consistent(self) -> bool:
        return self.problem is None


class WriteMode(str, Enum):
    IN_PLACE = "in_place"
    OUTPUT_FOLDER = "output_folder"


class WritePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: WriteMode = WriteMode.IN_PLACE
    atomic: bool = False


class ReadResult(BaseModel):
    success: bool
    data: List[List[int]] = Field(default_factory=list)
    error: Optional[str] = None


class FileStatus(str, Enum):
    WRITTEN = "written"
    TRUNCATED = "truncated"
    READ_FAILED = "read_failed"
    OUTPUT_CONFLICT = "output_conflict"


class FileReport(BaseModel):
    input_path: str
    output_path: Optional[str] = None
    status: FileStatus
    rows_written: int = 0
    message: Optional[str] = None


class ProcessSummary(BaseModel):
    files: int = 0
    written: int = 0
    truncated: int = 0
    read_failed: int = 0
    conflicts: int = 0


class ProcessReport(BaseModel):
    summary: ProcessSummary = Field(default_factory=ProcessSummary)
    config_error: Optional[str] = None
    files: List[FileReport] = Field(default_factory=list)
    unresolved: List[str] = Field(default_factory=list)

    def add(self, report: FileReport) -> None:
        self.files.append(report)
        self.summary.files += 1
        if report.status is FileStatus.WRITTEN:
            self.summary.written += 1
        elif report.status is FileStatus.TRUNCATED:
            self.summary.truncated += 1
        elif report.status is FileStatus.OUTPUT_CONFLICT:
            self.summary.conflicts += 1
        else:
            self.summary.read_failed += 1


# --- HTTP envelopes ---


class NormalizedTrace(BaseModel):
    sha256: str
    encoding: str = Field(default="utf-8")
    content_b64: str


class ReportSummary(BaseModel):
    rows: Optional[int] = Field(default=None, examples=[None])
    columns: Optional[int] = Field(default=None, examples=[None])
    rows_written: int = 0
    errors: int = 0
    deterministic: bool = True


class ReportItem(BaseModel):
    row: Optional[int] = None
    column: Optional[str] = None
    issue: str
    value: Optional[str] = None
    action: str


class ScaleReport(BaseModel):
    summary: ReportSummary
    normalizations: dict = Field(default_factory=dict)
    errors: List[ReportItem] = Field(default_factory=list)


class ScaleResponse(BaseModel):
    normalized_trace: NormalizedTrace
    report: ScaleReport


class ProcessRequest(BaseModel):
    output_folder: str
    paths: List[str]
    columns: Optional[int] = Field(default=None, ge=0)
    delta: Optional[List[float]] = None
    write_mode: Optional[WriteMode] = None
    atomic: Optional[bool] = None


class HealthResponse(BaseModel):
    ok: bool = True
