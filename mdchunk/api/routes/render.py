import logging
from fastapi import APIRouter, Depends, Request, HTTPException

from mdchunk.models.api import ChunkView, RenderRequest, RenderResponse
from mdchunk.core.pipeline.rendering import RenderPipeline

router = APIRouter()
logger = logging.getLogger(__name__)

# Dependency to get RenderPipeline from app state
def get_render_pipeline(request: Request) -> RenderPipeline:
    return request.app.state.render_pipeline

@router.post("/render", response_model=RenderResponse, summary="Segment a Markdown document into sized chunks")
def render_document(
    request_data: RenderRequest,
    pipeline: RenderPipeline = Depends(get_render_pipeline)
):
    """
    Runs preprocess -> parse -> segment over the whole document.
    A max_width overrides the container width for this request only.
    """
    try:
        style = None
        if request_data.max_width:
            style = pipeline.style.model_copy(update={"max_container_width": request_data.max_width})

        chunks = pipeline.run(request_data.markdown, style=style)
        return RenderResponse(
            chunks=[ChunkView.from_chunk(c) for c in chunks],
            total_chunks=len(chunks)
        )

    except Exception as e:
        logger.exception("Render pipeline execution failed.")
        raise HTTPException(status_code=500, detail=str(e))
