"""
main.py – FastAPI application entry point.

Endpoints
---------
GET  /                – service banner
GET  /health          – liveness / readiness probe with version info
POST /graph           – events JSON → rendered account network graph
POST /export          – events JSON → threat-data export document (attachment)
GET  /export/current  – most recent export document
POST /upload          – upload an event file (JSON / NDJSON / CSV), get both views

Production concerns addressed
------------------------------
- Structured logging (INFO level)
- File-size guard before parsing an upload
- Request-ID header injected into every response for traceability
- parse_stats returned so callers know about dropped records / warnings
- Exporter owned by the app (lifespan), not a process-wide singleton
- CORS locked to env-configurable origins
"""
from __future__ import annotations

import logging
import os
import uuid

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, UploadFile, File, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import __version__
from .config import GRAPH_EVENT_CAP, MAX_EVENTS, MAX_FILE_SIZE_BYTES
from .exporter import ThreatDataExporter, document_filename, serialize_document
from .graph_builder import build_network_graph
from .models import EventBatch, ParseStats
from .parser import SUPPORTED_EXTENSIONS, parse_events

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s │ %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Threat Graph Engine v%s starting up", __version__)
    app.state.exporter = ThreatDataExporter()
    yield
    log.info("Threat Graph Engine shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
ALLOWED_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

app = FastAPI(
    title="Threat Graph Engine",
    description="Aggregate financial threat events into an account network and export document",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _exporter(request: Request) -> ThreatDataExporter:
    return request.app.state.exporter


def _attachment(document) -> Response:
    filename = document_filename(document)
    return Response(
        content=serialize_document(document),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "service": "Threat Graph Engine", "version": __version__}


@app.get("/health")
def health():
    """Liveness / readiness probe."""
    return {
        "status": "healthy",
        "version": __version__,
        "max_file_size_mb": MAX_FILE_SIZE_BYTES // (1024 * 1024),
        "max_events": MAX_EVENTS,
        "graph_event_cap": GRAPH_EVENT_CAP,
    }


@app.post("/graph")
def graph(batch: EventBatch):
    """Build the rendered account network from the first GRAPH_EVENT_CAP events."""
    result = build_network_graph(batch.events)
    return JSONResponse(content=result.model_dump(mode="json"))


@app.post("/export")
def export(batch: EventBatch, request: Request):
    """Export every event as a threat-data document, served as a JSON attachment."""
    exporter = _exporter(request)
    document = exporter.export(batch.events)
    return _attachment(document)


@app.get("/export/current")
def export_current(request: Request):
    exporter = _exporter(request)
    document = exporter.current()
    if document is None:
        raise HTTPException(status_code=404, detail="No export has been produced yet.")
    return _attachment(document)


@app.post("/upload")
async def upload(request: Request, file: UploadFile = File(...)):
    """
    Upload an event file and receive both the network graph and the export.

    Accepted formats: .json (array or {"events": [...]}), .ndjson/.jsonl, .csv
    """
    filename = file.filename or ""
    if not filename.lower().endswith(SUPPORTED_EXTENSIONS):
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type. Accepted: {', '.join(SUPPORTED_EXTENSIONS)}",
        )

    file_bytes = await file.read()

    if len(file_bytes) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_FILE_SIZE_BYTES // (1024*1024)} MB.",
        )

    try:
        events, parse_stats = parse_events(file_bytes, filename)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if parse_stats.get("warnings"):
        log.warning("Parse warnings for %s: %s", filename, parse_stats["warnings"])

    network_graph = build_network_graph(events)
    document = _exporter(request).export(events)

    log.info(
        "Upload processed for %s: %d events, %d graph nodes, %d exported accounts",
        filename,
        len(events),
        len(network_graph.nodes),
        len(document.accounts),
    )
    return JSONResponse(content={
        "network_graph": network_graph.model_dump(mode="json"),
        "export":        document.model_dump(mode="json", by_alias=True, exclude_none=True),
        "parse_stats":   ParseStats(**parse_stats).model_dump(),
    })
