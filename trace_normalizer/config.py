"""Runtime settings read from TRACE_NORMALIZER_* environment variables."""

from __future__ import annotations

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

from .models import TraceConfig, WriteMode, WritePolicy

ENV_PREFIX = "TRACE_NORMALIZER_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class Settings(BaseModel):
    columns: int = Field(default=0, ge=0)
    delta: List[float] = Field(default_factory=list)
    write_mode: WriteMode = WriteMode.IN_PLACE
    atomic: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8001

    def trace_config(self, columns: Optional[int] = None, delta: Optional[List[float]] = None) -> TraceConfig:
        return TraceConfig(
            num_columns=self.columns if columns is None else columns,
            delta=tuple(self.delta if delta is None else delta),
        )

    def write_policy(self, mode: Optional[WriteMode] = None, atomic: Optional[bool] = None) -> WritePolicy:
        return WritePolicy(
            mode=self.write_mode if mode is None else mode,
            atomic=self.atomic if atomic is None else atomic,
        )


def parse_delta(text: Optional[str]) -> List[float]:
    """Parse "2.0, 0.5" into [2.0, 0.5]. Blank input gives an empty list."""
    if text is None:
        return []
    items = [item.strip() for item in text.split(",")]
    if items == [""]:
        return []
    try:
        return [float(item) for item in items]
    except ValueError as exc:
        raise ValueError(f"Invalid delta list: {text!r}") from exc


def _parse_bool(name: str, text: str) -> bool:
    value = text.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {text!r}")


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env

    def get(key: str) -> Optional[str]:
        return env.get(ENV_PREFIX + key)

    values: dict = {}
    if (raw := get("COLUMNS")) is not None:
        values["columns"] = int(raw)
    if (raw := get("DELTA")) is not None:
        values["delta"] = parse_delta(raw)
    if (raw := get("WRITE_MODE")) is not None:
        values["write_mode"] = WriteMode(raw.strip().lower())
    if (raw := get("ATOMIC")) is not None:
        values["atomic"] = _parse_bool(ENV_PREFIX + "ATOMIC", raw)
    if (raw := get("LOG_LEVEL")) is not None:
        values["log_level"] = raw.strip().upper()
    if (raw := get("HOST")) is not None:
        values["host"] = raw
    if (raw := get("PORT")) is not None:
        values["port"] = int(raw)

    return Settings(**values)
