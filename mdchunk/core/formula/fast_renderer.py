import io
import logging
import threading
from typing import Optional
from matplotlib import mathtext
from matplotlib.font_manager import FontProperties
from PIL import Image

from mdchunk.config.settings import settings, FormulaConfig, StyleConfig
from mdchunk.core.formula.errors import FastRenderError
from mdchunk.models.render import RenderResult, RenderStrategy, Size

logger = logging.getLogger(__name__)

# matplotlib figures are not safe to build concurrently
_mathtext_lock = threading.Lock()

class MathTextRenderer:
    """
    Fast path: typesets the formula with matplotlib's mathtext engine and
    returns it as a Pillow image. Handles inline TeX math but no
    environments (matrices, aligned blocks and the like).
    """

    def __init__(self, config: Optional[FormulaConfig] = None):
        self.config = config or settings.formula

    def render(self, formula: str, style: Optional[StyleConfig] = None) -> RenderResult:
        style = style or settings.style
        source = formula.strip() or r"\ "
        buffer = io.BytesIO()
        try:
            with _mathtext_lock:
                mathtext.math_to_image(
                    f"${source}$",
                    buffer,
                    prop=FontProperties(size=style.font_size),
                    dpi=self.config.dpi,
                    format="png",
                    color=style.text_color
                )
        except Exception as e:
            raise FastRenderError(f"mathtext could not parse formula: {e}", {"formula": source[:80]}) from e

        buffer.seek(0)
        image = Image.open(buffer)
        image.load()
        # Pixels at the configured dpi, reported back in points
        scale = 72.0 / self.config.dpi
        size = Size(width=image.width * scale, height=image.height * scale)
        logger.debug(f"mathtext rendered formula at {size.width:.0f}x{size.height:.0f}")
        return RenderResult(artifact=image, size=size, success=True, strategy=RenderStrategy.fast)
