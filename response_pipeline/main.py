"""
FastAPI entrypoint for the response pipeline.

Routes:
- /parse: full pipeline (preamble/summary/content split + visualizations)
- /visualizations/process: extract fenced visualizations from text
- /visualizations/detect: heuristic check whether text needs a visualization
- /visualizations/generate: synthesize a visualization from prose
- /visualizations/sample: fixed demo chart/table for renderer checks
- /visualizations/export: attachment data as CSV/JSON
"""

import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from .exporter import export_attachment
from .generator import detect_visualization_need, generate_visualization_from_text
from .pipeline import run_pipeline
from .schemas import (
    ExportRequest,
    GenerateRequest,
    PipelineResult,
    ProcessedResponse,
    TextRequest,
    VisualizationAttachment,
    VisualizationNeed,
)
from .visualization_parser import generate_sample_chart, generate_sample_table, process_response

EXPORT_MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}

app = FastAPI(title="Response Visualization Pipeline")


@app.post("/parse", response_model=PipelineResult)
async def parse_endpoint(request: TextRequest):
    return run_pipeline(request.text, auto_generate=request.auto_generate)


@app.post("/visualizations/process", response_model=ProcessedResponse)
async def process_endpoint(request: TextRequest):
    return process_response(request.text)


@app.post("/visualizations/detect", response_model=VisualizationNeed)
async def detect_endpoint(request: TextRequest):
    return detect_visualization_need(request.text)


@app.post("/visualizations/generate", response_model=VisualizationAttachment)
async def generate_endpoint(request: GenerateRequest):
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Text is required")

    hint = None if request.type == "auto" else request.type
    attachment = generate_visualization_from_text(request.text, hint)
    if attachment is None:
        logger.info(f"Nothing generated for {len(request.text)} chars of text (type={request.type})")
        raise HTTPException(
            status_code=422,
            detail="No visualization could be generated from the supplied text"
        )
    return attachment


@app.get("/visualizations/sample", response_model=VisualizationAttachment)
async def sample_endpoint(kind: str = "bar"):
    if kind == "table":
        return generate_sample_table()
    try:
        return generate_sample_chart(kind)
    except ValidationError:
        raise HTTPException(status_code=400, detail=f"Unknown chart kind: {kind}")


@app.post("/visualizations/export")
async def export_endpoint(request: ExportRequest):
    try:
        body = export_attachment(request.attachment, request.format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PlainTextResponse(body, media_type=EXPORT_MEDIA_TYPES[request.format])
