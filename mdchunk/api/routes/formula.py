import logging
from fastapi import APIRouter, Depends, Request, HTTPException

from mdchunk.models.api import FormulaRequest, FormulaResponse
from mdchunk.core.formula.selector import FormulaRenderer

router = APIRouter()
logger = logging.getLogger(__name__)

def get_formula_renderer(request: Request) -> FormulaRenderer:
    return request.app.state.formula_renderer

@router.post("/formula", response_model=FormulaResponse, summary="Render a single TeX formula to PNG")
def render_formula(
    request_data: FormulaRequest,
    renderer: FormulaRenderer = Depends(get_formula_renderer)
):
    """
    Rendering failures are reported in the body (success=false), not as HTTP errors.
    """
    try:
        result = renderer.render(request_data.formula)
        logger.info(f"Formula rendered via {result.strategy.value if result.strategy else 'none'} (success={result.success})")
        return FormulaResponse.from_result(result)

    except Exception as e:
        logger.exception("Formula rendering failed.")
        raise HTTPException(status_code=500, detail=str(e))
