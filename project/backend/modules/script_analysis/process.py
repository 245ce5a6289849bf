"""
Analysis job entry point.

Transcribes a source video, extracts its ad structure and stores the result
on the analysis record. Callers observe progress by polling the record.
"""

from typing import Optional, Union
from uuid import UUID

from shared.errors import PipelineError
from shared.logging import get_logger
from shared.models import Analysis, AnalysisStatus
from shared.repository import PipelineRepository
from modules.transcription import transcribe
from modules.script_generator import generate_structure

logger = get_logger("script_analysis.process")


async def process_analysis(
    analysis_id: Union[UUID, str],
    source_url: str,
    brand_id: Optional[Union[UUID, str]] = None,
    repository: Optional[PipelineRepository] = None
) -> Analysis:
    """
    Run transcription and structure extraction for one analysis.

    Returns:
        The completed analysis

    Raises:
        PipelineError: After the analysis has been marked failed
    """
    repository = repository or PipelineRepository()
    logger.info("Analysis started", extra={"analysis_id": str(analysis_id), "source_url": source_url})

    try:
        await repository.update_analysis(analysis_id, status=AnalysisStatus.PROCESSING)

        transcript = await transcribe(source_url, job_id=analysis_id)
        await repository.update_analysis(
            analysis_id,
            transcription=transcript.text,
            status=AnalysisStatus.TRANSCRIBED,
            metadata={"language": transcript.language, "segments": transcript.segments_count},
        )

        brand = await repository.get_brand_context(brand_id)
        sections = await generate_structure(transcript.text, brand=brand, job_id=analysis_id)
        await repository.save_analysis_sections(analysis_id, sections, duration=transcript.duration)
        await repository.update_analysis(analysis_id, status=AnalysisStatus.COMPLETED, error_message=None)

    except Exception as e:
        logger.error(
            f"Analysis failed: {str(e)}",
            extra={"analysis_id": str(analysis_id), "error_type": type(e).__name__}
        )
        await repository.update_analysis(analysis_id, status=AnalysisStatus.FAILED, error_message=str(e))
        if isinstance(e, PipelineError):
            raise
        raise PipelineError(f"Analysis failed: {str(e)}", job_id=analysis_id) from e

    logger.info(
        "Analysis completed",
        extra={"analysis_id": str(analysis_id), "sections": len(sections)}
    )
    return await repository.get_analysis(analysis_id)
