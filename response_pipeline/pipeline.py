"""
Core orchestration / pipeline.

Flow:
1. Receive the raw model answer.
2. Split it into conversational preamble, summary and content body.
3. Run visualization extraction over the content body:
   - accepted fenced blocks become attachments
   - the body without those blocks becomes clean content
4. Optionally, when nothing was extracted, auto-generate one attachment from
   the clean content if the text clearly calls for it.
5. Use the explicit summary, or compose an executive summary from the content.
6. Return the combined result for persistence/rendering.
"""

import logging
from typing import Optional

from .generator import generate_visualization_from_text, should_add_visualization
from .response_parser import ResponseParser, get_default_parser
from .schemas import PipelineResult
from .visualization_parser import process_response

logger = logging.getLogger(__name__)


def run_pipeline(
    text: str,
    auto_generate: bool = False,
    parser: Optional[ResponseParser] = None,
) -> PipelineResult:
    """
    Main text pipeline.

    Args:
        text: Raw model answer
        auto_generate: Synthesize a visualization when none was embedded
        parser: Response parser to use (defaults to the shared parser)

    Returns:
        PipelineResult with preamble, summary, clean content and attachments
    """
    parser = parser or get_default_parser()

    # 1) Split preamble / summary / content
    parsed = parser.parse_response(text)

    # 2) Extract embedded visualizations from the content body
    processed = process_response(parsed.content)
    attachments = list(processed.attachments)

    # 3) Fallback generation
    if auto_generate and not attachments and should_add_visualization(processed.clean_content):
        generated = generate_visualization_from_text(processed.clean_content)
        if generated is not None:
            attachments.append(generated)
            logger.info(f"Auto-generated {generated.type} attachment")

    logger.info(
        f"Pipeline done: content_type={parsed.content_type}, attachments={len(attachments)}"
    )
    # 4) Executive summary: explicit one wins, else composed from the content
    executive_summary = parsed.summary or parser.generate_executive_summary(parsed.content, parsed.content_type)

    return PipelineResult(
        conversational=parsed.conversational,
        summary=parsed.summary,
        executive_summary=executive_summary,
        clean_content=processed.clean_content,
        content_type=parsed.content_type,
        metadata=parsed.metadata,
        attachments=attachments,
    )
