import io
from typing import Optional
from rich.console import Console
from rich.text import Text

from mdchunk.config.settings import settings, StyleConfig
from mdchunk.models.render import Size

def _console(columns: int) -> Console:
    return Console(file=io.StringIO(), width=columns, color_system=None, legacy_windows=False)

def measure(text: Text, max_width: float, style: Optional[StyleConfig] = None) -> Size:
    """
    Bounding size of a styled buffer wrapped to max_width.
    Wrapping is done in terminal cells, then scaled by the cell width and line height.
    """
    style = style or settings.style
    plain = text.plain
    trailing = len(plain) - len(plain.rstrip("\n"))
    if not plain.strip():
        return Size.zero()

    body = text.copy()
    if trailing:
        body.right_crop(trailing)

    columns = max(1, int(max_width // style.cell_width))
    lines = body.wrap(_console(columns), columns)
    widest = max((line.cell_len for line in lines), default=0)
    return Size(
        width=min(widest * style.cell_width, max_width),
        height=len(lines) * style.line_height
    )
