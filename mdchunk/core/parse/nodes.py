"""Node-kind discriminators over markdown-it syntax tree nodes."""
import re
from typing import Iterator, List, Optional
from markdown_it.tree import SyntaxTreeNode

from mdchunk.config.settings import settings
from mdchunk.models.chunk import ChunkKind

_open_marker = settings.preprocess.formula_open_marker
_close_marker = settings.preprocess.formula_close_marker
FORMULA_RE = re.compile(rf"{re.escape(_open_marker)}([\s\S]*?){re.escape(_close_marker)}")

def is_table(node: SyntaxTreeNode) -> bool:
    return node.type == "table"

def is_code_block(node: SyntaxTreeNode) -> bool:
    return node.type in ("fence", "code_block")

def is_thematic_break(node: SyntaxTreeNode) -> bool:
    return node.type == "hr"

def is_block_quote(node: SyntaxTreeNode) -> bool:
    return node.type == "blockquote"

def is_raw_html(node: SyntaxTreeNode) -> bool:
    return node.type == "html_block"

def inline_of(node: SyntaxTreeNode) -> Optional[SyntaxTreeNode]:
    if node.type == "paragraph" and node.children and node.children[0].type == "inline":
        return node.children[0]
    return None

def is_image(node: SyntaxTreeNode) -> bool:
    inline = inline_of(node)
    return bool(inline and len(inline.children) == 1 and inline.children[0].type == "image")

def is_formula_span(node: SyntaxTreeNode) -> bool:
    inline = inline_of(node)
    if not inline or len(inline.children) < 2:
        return False
    first, last = inline.children[0], inline.children[-1]
    return (
        first.type == "html_inline" and first.content.strip() == _open_marker
        and last.type == "html_inline" and last.content.strip() == _close_marker
    )

def classify(node: SyntaxTreeNode) -> ChunkKind:
    """Maps a block node to the chunk kind it would produce as a dedicated chunk."""
    if is_table(node):
        return ChunkKind.table
    if is_code_block(node):
        return ChunkKind.code
    if is_thematic_break(node):
        return ChunkKind.thematic_break
    if is_block_quote(node):
        return ChunkKind.block_quote
    if is_raw_html(node):
        return ChunkKind.raw_html
    if is_formula_span(node):
        return ChunkKind.formula
    if is_image(node):
        return ChunkKind.image
    return ChunkKind.text

def iter_inline(node: SyntaxTreeNode) -> Iterator[SyntaxTreeNode]:
    if node.type == "inline":
        yield node
        return
    for child in node.children:
        yield from iter_inline(child)

def formula_sources(node: SyntaxTreeNode) -> List[str]:
    """Raw formula bodies found in the node's inline source, markers removed."""
    sources = []
    for inline in iter_inline(node):
        sources.extend(m.group(1) for m in FORMULA_RE.finditer(inline.content))
    return sources

def image_source(node: SyntaxTreeNode) -> str:
    inline = inline_of(node)
    if not inline or not inline.children:
        return ""
    return str(inline.children[0].attrGet("src") or "")

def source_text(node: SyntaxTreeNode) -> str:
    """Best-effort raw markdown for the node's inline content."""
    return "".join(inline.content for inline in iter_inline(node))
