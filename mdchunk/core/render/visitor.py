from typing import Optional
from markdown_it.tree import SyntaxTreeNode
from rich.style import Style
from rich.text import Text

from mdchunk.config.settings import settings, StyleConfig

HEADING_STYLES = {
    "h1": "bold underline",
    "h2": "bold",
    "h3": "bold italic",
}
MATH_STYLE = "italic cyan"
CODE_SPAN_STYLE = "bold magenta"
QUOTE_STYLE = "italic"

class StyledTextVisitor:
    """
    Renders a block node into a rich Text buffer.
    Every block ends with a newline so buffers can be concatenated.
    Formula spans (between the preprocessor's marker tags) are kept as
    source text in the math style.
    """

    def __init__(self, style: Optional[StyleConfig] = None):
        self.style = style or settings.style
        self._math_depth = 0

    def visit(self, node: SyntaxTreeNode) -> Text:
        text = Text(style=Style(color=self.style.text_color))
        self._block(node, text, indent="")
        if text.plain and not text.plain.endswith("\n"):
            text.append("\n")
        return text

    def visit_cell(self, cell: SyntaxTreeNode) -> Text:
        """Table cells render inline only, without the trailing newline."""
        text = Text(style=Style(color=self.style.text_color))
        self._inline_children(cell, text, "bold" if cell.type == "th" else None)
        return text

    # Block level

    def _block(self, node: SyntaxTreeNode, out: Text, indent: str) -> None:
        kind = node.type
        if kind == "heading":
            self._inline_children(node, out, HEADING_STYLES.get(node.tag, "bold"))
            out.append("\n")
        elif kind == "paragraph":
            out.append(indent)
            self._inline_children(node, out, None)
            out.append("\n")
        elif kind in ("bullet_list", "ordered_list"):
            self._list(node, out, indent)
        elif kind == "blockquote":
            quoted = Text()
            for child in node.children:
                self._block(child, quoted, indent)
            start = len(out)
            for line in quoted.split("\n"):
                out.append("│ ", style="dim")
                out.append_text(line)
                out.append("\n")
            out.stylize(QUOTE_STYLE, start, len(out))
        elif kind in ("fence", "code_block"):
            out.append(node.content, style=CODE_SPAN_STYLE)
        elif kind == "html_block":
            out.append(node.content.rstrip("\n") + "\n", style="dim")
        elif kind == "hr":
            out.append("───\n", style="dim")
        elif kind == "table":
            for section in node.children:
                for row in section.children:
                    out.append(" | ".join(self.visit_cell(cell).plain for cell in row.children) + "\n")
        else:
            for child in node.children:
                self._block(child, out, indent)

    def _list(self, node: SyntaxTreeNode, out: Text, indent: str) -> None:
        ordered = node.type == "ordered_list"
        start = int(node.attrGet("start") or 1) if ordered else 1
        for offset, item in enumerate(node.children):
            out.append(indent + (f"{start + offset}. " if ordered else "• "))
            for position, child in enumerate(item.children):
                if child.type == "paragraph":
                    if position:
                        out.append(indent + "  ")
                    self._inline_children(child, out, None)
                    out.append("\n")
                else:
                    if position == 0:
                        out.append("\n")
                    self._block(child, out, indent + "  ")

    # Inline level

    def _inline_children(self, node: SyntaxTreeNode, out: Text, style: Optional[str]) -> None:
        for child in node.children:
            self._inline(child, out, style)

    def _inline(self, node: SyntaxTreeNode, out: Text, style: Optional[str]) -> None:
        kind = node.type
        active = MATH_STYLE if self._math_depth else style
        if kind == "text":
            out.append(node.content, style=active)
        elif kind == "softbreak":
            out.append("\n" if self._math_depth else " ", style=active)
        elif kind == "hardbreak":
            out.append("\n")
        elif kind == "code_inline":
            out.append(node.content, style=CODE_SPAN_STYLE)
        elif kind == "strong":
            self._inline_children(node, out, _join(style, "bold"))
        elif kind == "em":
            self._inline_children(node, out, _join(style, "italic"))
        elif kind == "s":
            self._inline_children(node, out, _join(style, "strike"))
        elif kind == "link":
            self._inline_children(node, out, _join(style, "underline"))
        elif kind == "image":
            alt = "".join(child.content for child in node.children) or "image"
            out.append(f"[{alt}]", style="dim")
        elif kind == "html_inline":
            self._html_inline(node, out)
        else:
            self._inline_children(node, out, style)

    def _html_inline(self, node: SyntaxTreeNode, out: Text) -> None:
        tag = node.content.strip()
        if tag == settings.preprocess.formula_open_marker:
            self._math_depth += 1
        elif tag == settings.preprocess.formula_close_marker:
            self._math_depth = max(0, self._math_depth - 1)
        else:
            out.append(node.content, style="dim")

def _join(base: Optional[str], extra: str) -> str:
    return f"{base} {extra}" if base else extra

def visit(node: SyntaxTreeNode, style: Optional[StyleConfig] = None) -> Text:
    return StyledTextVisitor(style).visit(node)
