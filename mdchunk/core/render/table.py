from typing import List, Optional, Tuple
from markdown_it.tree import SyntaxTreeNode
from rich.text import Text

from mdchunk.config.settings import settings, StyleConfig
from mdchunk.core.render.measure import measure
from mdchunk.core.render.visitor import StyledTextVisitor
from mdchunk.models.chunk import TablePayload
from mdchunk.models.render import Size

def _row_cells(section: SyntaxTreeNode, visitor: StyledTextVisitor) -> List[List[Text]]:
    return [[visitor.visit_cell(cell) for cell in row.children] for row in section.children]

def _cell_size(cell: Text, style: StyleConfig) -> Size:
    table = style.table
    size = measure(cell, table.cell_max_width, style)
    return Size(width=size.width, height=min(size.height, table.max_lines * style.line_height))

def render_table(node: SyntaxTreeNode, style: Optional[StyleConfig] = None) -> Tuple[TablePayload, Size]:
    """
    Header and body matrices of styled cells.
    Each row is as tall as its tallest cell (plus cell padding) but never
    shorter than the configured cell height.
    """
    style = style or settings.style
    table = style.table
    visitor = StyledTextVisitor(style)

    headers: List[Text] = []
    rows: List[List[Text]] = []
    for section in node.children:
        if section.type == "thead":
            header_rows = _row_cells(section, visitor)
            headers = header_rows[0] if header_rows else []
        elif section.type == "tbody":
            rows.extend(_row_cells(section, visitor))

    vertical = table.cell_padding.top + table.cell_padding.bottom
    horizontal = table.cell_padding.left + table.cell_padding.right
    row_heights: List[float] = []
    column_widths: List[float] = []
    for cells in [headers] + rows:
        tallest = 0.0
        for column, cell in enumerate(cells):
            size = _cell_size(cell, style)
            tallest = max(tallest, size.height)
            if column >= len(column_widths):
                column_widths.append(0.0)
            column_widths[column] = max(column_widths[column], size.width + horizontal)
        row_heights.append(max(table.cell_height, tallest + vertical))

    height = sum(row_heights) + table.padding.top + table.padding.bottom
    width = min(
        style.max_container_width,
        sum(column_widths) + table.padding.left + table.padding.right
    )
    payload = TablePayload(headers=headers, rows=rows, row_heights=row_heights)
    return payload, Size(width=width, height=height)
