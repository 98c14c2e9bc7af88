"""
Formula rendering errors.
They are raised inside the renderers and converted to a failed
RenderResult by the selector, so none of them reaches the caller.
"""
from typing import Any

class FormulaRenderError(Exception):
    """Base class for every formula rendering failure."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

class FastRenderError(FormulaRenderError):
    """The vector math renderer could not typeset the formula."""

class ConverterError(FormulaRenderError):
    """TeX to SVG conversion failed or produced no document."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        details = {}
        if command:
            details["command"] = command[0]
        if stderr:
            details["stderr"] = stderr.strip()[:200]
        super().__init__(message, details)

class RasterizeError(FormulaRenderError):
    """The SVG document could not be rasterized."""

class FormulaTooLargeError(FormulaRenderError):
    def __init__(self, width: float, height: float, limit: float):
        super().__init__(
            f"Formula image {width:.0f}x{height:.0f} exceeds {limit:.0f}",
            {"width": width, "height": height, "limit": limit}
        )
