from typing import Optional
from mdchunk.config.settings import settings, FormulaConfig
from mdchunk.models.render import RenderStrategy

# Checked in order; only one layer is removed
DELIMITERS = [
    ("\\[", "\\]"),
    ("[", "]"),
    ("$$", "$$"),
    ("$", "$"),
    ("\\(", "\\)"),
]

def trim_delimiters(text: str) -> str:
    """Strips surrounding whitespace and one layer of math delimiters."""
    trimmed = text.strip()
    for opening, closing in DELIMITERS:
        if len(trimmed) >= len(opening) + len(closing) and trimmed.startswith(opening) and trimmed.endswith(closing):
            return trimmed[len(opening):len(trimmed) - len(closing)].strip()
    return trimmed

def special_char_density(text: str, config: Optional[FormulaConfig] = None) -> float:
    config = config or settings.formula
    if not text:
        return 0.0
    return sum(1 for c in text if c in config.special_chars) / len(text)

def select_strategy(text: str, config: Optional[FormulaConfig] = None) -> RenderStrategy:
    """
    FALLBACK for constructs the fast renderer cannot typeset (environments,
    matrices, stacked operators) and for long formulas dense in grouping and
    script characters. FAST otherwise.
    """
    config = config or settings.formula
    if any(marker in text for marker in config.complex_markers):
        return RenderStrategy.fallback
    if len(text) > config.long_formula_length and special_char_density(text, config) > config.special_char_density:
        return RenderStrategy.fallback
    return RenderStrategy.fast
