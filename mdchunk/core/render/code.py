import logging
from typing import Optional, Tuple
from markdown_it.tree import SyntaxTreeNode
from rich.syntax import Syntax
from rich.text import Text

from mdchunk.config.settings import settings, StyleConfig
from mdchunk.core.render.measure import measure
from mdchunk.models.chunk import CodePayload
from mdchunk.models.render import Size
from mdchunk.storage.cache_manager import render_caches

logger = logging.getLogger(__name__)

def code_language(node: SyntaxTreeNode) -> str:
    info = (node.info or "").strip()
    return info.split()[0] if info else ""

def highlight(code: str, language: str, style: StyleConfig) -> Text:
    """Syntax-tinted buffer, memoized in the styled-text cache."""
    key = f"{style.code_theme}\x00{language}\x00{code}"
    cached = render_caches.styled_text.get(key)
    if cached is not None:
        return cached

    syntax = Syntax(code, language or "text", theme=style.code_theme)
    highlighted = syntax.highlight(code)
    render_caches.styled_text.set(key, highlighted, cost=len(code))
    logger.debug(f"Highlighted {len(code)} chars of '{language or 'text'}' code")
    return highlighted

def render_code(node: SyntaxTreeNode, style: Optional[StyleConfig] = None) -> Tuple[CodePayload, Size]:
    """
    Code blocks are laid out unwrapped (horizontally scrollable), so the code
    itself is measured at twice the container width. The item box adds the
    header bar, the inner spacing and the padding around it.
    """
    style = style or settings.style
    language = code_language(node)
    code = node.content
    highlighted = highlight(code, language, style)

    code_size = measure(highlighted, style.max_container_width * 2, style)
    height = (
        style.code_padding.top
        + style.code_header_height
        + style.code_inner_spacing
        + code_size.height
        + style.code_inner_spacing
        + style.code_padding.bottom
    )
    payload = CodePayload(language=language, code=code, highlighted=highlighted, code_size=code_size)
    return payload, Size(width=style.max_container_width, height=height)
