from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile

from .config import load_settings, parse_delta
from .models import HealthResponse, ProcessReport, ProcessRequest, ScaleResponse
from .normalize import InvalidArgumentError, TraceProcessor, scale_trace_bytes
from .reader import DelimitedTraceReader, TraceParseError

app = FastAPI(
    title="trace-normalizer",
    description="Column scaling for integer trace files",
    version="0.1.0",
)


def _load_settings():
    try:
        return load_settings()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid settings: {exc}") from exc


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/scale", response_model=ScaleResponse)
async def scale_trace(
    file: UploadFile = File(...),
    columns: Optional[int] = Form(None),
    delta: Optional[str] = Form(None),
):
    settings = _load_settings()
    try:
        config = settings.trace_config(columns, parse_delta(delta) if delta is not None else None)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    raw = await file.read()
    try:
        return scale_trace_bytes(raw, config)
    except (InvalidArgumentError, TraceParseError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.post("/process", response_model=ProcessReport)
def process_traces(request: ProcessRequest):
    settings = _load_settings()
    processor = TraceProcessor(
        DelimitedTraceReader(),
        settings.trace_config(request.columns, request.delta),
        settings.write_policy(request.write_mode, request.atomic),
    )
    report = processor.process(request.output_folder, request.paths)
    if report.config_error:
        raise HTTPException(status_code=422, detail=report.config_error)
    return report


if __name__ == "__main__":
    import logging
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port)
