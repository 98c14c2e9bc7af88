import io
import logging
import re
import subprocess
import xml.etree.ElementTree as ET
from typing import Optional
from PIL import Image

from mdchunk.config.settings import settings, FormulaConfig, StyleConfig
from mdchunk.core.formula.errors import ConverterError, FormulaTooLargeError, RasterizeError
from mdchunk.models.render import RenderResult, RenderStrategy, Size

logger = logging.getLogger(__name__)

# Pixels per unit for the units MathJax and TeX tools emit
UNIT_PX = {"": 1.0, "px": 1.0, "pt": 4.0 / 3.0, "ex": 8.0, "em": 16.0}
LENGTH_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*([a-z]*)\s*$")

def parse_length(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    match = LENGTH_RE.match(value)
    if not match or match.group(2) not in UNIT_PX:
        return None
    return float(match.group(1)) * UNIT_PX[match.group(2)]

def svg_size(svg: str) -> Size:
    """Declared size of an SVG document, falling back to its viewBox."""
    try:
        root = ET.fromstring(svg)
    except ET.ParseError as e:
        raise ConverterError(f"Converter output is not valid SVG: {e}") from e

    width = parse_length(root.get("width"))
    height = parse_length(root.get("height"))
    if width is None or height is None:
        view_box = (root.get("viewBox") or "").replace(",", " ").split()
        if len(view_box) != 4:
            raise ConverterError("SVG declares neither a size nor a viewBox")
        width, height = float(view_box[2]), float(view_box[3])
    return Size(width=width, height=height)

class TexToSvgConverter:
    """Runs the external TeX to SVG command (MathJax tex2svg by default)."""

    def __init__(self, config: Optional[FormulaConfig] = None):
        self.config = config or settings.formula

    def convert(self, formula: str) -> str:
        command = list(self.config.converter_command) + [formula]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.config.command_timeout,
                check=False
            )
        except subprocess.TimeoutExpired as e:
            raise ConverterError(f"Converter timed out after {self.config.command_timeout}s", command) from e
        except OSError as e:
            raise ConverterError(f"Converter could not be started: {e}", command) from e

        if result.returncode != 0:
            raise ConverterError(f"Converter exited with status {result.returncode}", command, result.stderr)
        svg = result.stdout.strip()
        if "<svg" not in svg:
            raise ConverterError("Converter produced no SVG document", command, result.stderr)
        return svg

class SvgRasterizer:
    """Rasterizes SVG to a Pillow image through an external rasterizer command."""

    def __init__(self, config: Optional[FormulaConfig] = None):
        self.config = config or settings.formula

    def rasterize(self, svg: str, target: Size) -> Image.Image:
        command = list(self.config.rasterizer_command) + [
            "--width", str(max(1, round(target.width))),
            "--height", str(max(1, round(target.height)))
        ]
        try:
            result = subprocess.run(
                command,
                input=svg.encode("utf-8"),
                capture_output=True,
                timeout=self.config.command_timeout,
                check=False
            )
        except subprocess.TimeoutExpired as e:
            raise RasterizeError(f"Rasterizer timed out after {self.config.command_timeout}s") from e
        except OSError as e:
            raise RasterizeError(f"Rasterizer could not be started: {e}") from e

        if result.returncode != 0 or not result.stdout:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()[:200]
            raise RasterizeError(f"Rasterizer exited with status {result.returncode}", {"stderr": stderr})
        try:
            image = Image.open(io.BytesIO(result.stdout))
            image.load()
        except OSError as e:
            raise RasterizeError(f"Rasterizer output is not an image: {e}") from e
        return image

class SvgFormulaRenderer:
    """
    Fallback path: TeX -> SVG -> raster.
    The display size is the SVG's declared size scaled by
    font_size / base_font_size * scale_factor. Formulas whose display size
    exceeds max_dimension are rejected before and after rasterizing.
    """

    def __init__(self,
                 config: Optional[FormulaConfig] = None,
                 converter: Optional[TexToSvgConverter] = None,
                 rasterizer: Optional[SvgRasterizer] = None):
        self.config = config or settings.formula
        self.converter = converter or TexToSvgConverter(self.config)
        self.rasterizer = rasterizer or SvgRasterizer(self.config)

    def display_size(self, original: Size, style: StyleConfig) -> Size:
        scale = style.font_size / self.config.base_font_size * self.config.scale_factor
        return Size(width=original.width * scale, height=original.height * scale)

    def check_dimension(self, size: Size) -> None:
        limit = self.config.max_dimension
        if size.width > limit or size.height > limit:
            raise FormulaTooLargeError(size.width, size.height, limit)

    def render(self, formula: str, style: Optional[StyleConfig] = None) -> RenderResult:
        style = style or settings.style
        svg = self.converter.convert(formula)
        target = self.display_size(svg_size(svg), style)
        self.check_dimension(target)

        image = self.rasterizer.rasterize(svg, target)
        size = Size(width=image.width, height=image.height)
        self.check_dimension(size)
        logger.debug(f"SVG fallback rendered formula at {size.width:.0f}x{size.height:.0f}")
        return RenderResult(artifact=image, size=size, success=True, strategy=RenderStrategy.fallback)
