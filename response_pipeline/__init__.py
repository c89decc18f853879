"""Post-processing of model answers: preamble split, visualization extraction and generation."""

from .generator import detect_visualization_need, generate_visualization_from_text
from .pipeline import run_pipeline
from .response_parser import ResponseParser, generate_executive_summary, parse_response
from .visualization_parser import contains_visualization, extract_visualizations, process_response

__all__ = [
    "ResponseParser",
    "contains_visualization",
    "detect_visualization_need",
    "extract_visualizations",
    "generate_executive_summary",
    "generate_visualization_from_text",
    "parse_response",
    "process_response",
    "run_pipeline",
]
