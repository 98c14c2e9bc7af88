import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Type
from mdchunk.config.settings import settings, PreprocessConfig

logger = logging.getLogger(__name__)

class TextProcessor(ABC):
    """One rewrite step of the preprocessor. Lower priority runs first."""
    priority: int = 100

    @abstractmethod
    def process(self, text: str) -> str:
        pass

class FormulaProcessor(TextProcessor):
    """
    Wraps formula spans ($$..$$, $..$, \\[..\\], \\(..\\)) in explicit marker tags
    so the parser keeps them intact.
    - Spans already inside a marker pair, fenced code and code spans are skipped.
    - Multi-line spans are placed on their own lines to form a standalone block.
    - Replacements run in reverse order so earlier offsets stay valid.
    """
    priority = 10

    def __init__(self, config: Optional[PreprocessConfig] = None):
        self.config = config or settings.preprocess
        open_tag = re.escape(self.config.formula_open_marker)
        close_tag = re.escape(self.config.formula_close_marker)
        self.pattern = re.compile(
            rf"(?P<marked>{open_tag}[\s\S]*?{close_tag})"
            r"|(?P<code>(?P<fence>`{3,}|~{3,})[\s\S]*?(?P=fence)|`[^`\n]*`)"
            r"|(?P<formula>\$\$[\s\S]*?\$\$|\$[\s\S]*?\$|\\\[[\s\S]*?\\\]|\\\([\s\S]*?\\\))"
        )

    def process(self, text: str) -> str:
        matches = [m for m in self.pattern.finditer(text) if m.group("formula") is not None]
        result = text
        for match in reversed(matches):
            span = match.group("formula")
            if len(span) >= self.config.max_formula_length:
                continue
            result = result[:match.start()] + self.wrap(span) + result[match.end():]
        return result

    def wrap(self, span: str) -> str:
        wrapped = f"{self.config.formula_open_marker}{span}{self.config.formula_close_marker}"
        if "\n" in span or "\r" in span:
            return f"\n{wrapped}\n"
        return wrapped

class CodeFenceProcessor(TextProcessor):
    """Moves a fence delimiter glued to preceding text onto its own line."""
    priority = 20

    FENCE_RE = re.compile(r"(`{3,}|~{3,})")
    INFO_RE = re.compile(r"^[^`\s]*[ \t]*$")

    def process(self, text: str) -> str:
        lines = text.splitlines(keepends=True)
        return "".join(self._split_line(line) for line in lines)

    def _split_line(self, line: str) -> str:
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        fences = list(self.FENCE_RE.finditer(body))
        # Two runs on one line is inline code, not a fence
        if len(fences) != 1:
            return line
        fence = fences[0]
        prefix = body[:fence.start()]
        if not prefix.strip():
            return line
        if not self.INFO_RE.match(body[fence.end():]):
            return line
        return f"{prefix}\n{body[fence.start():]}{ending}"

class ImageTagProcessor(TextProcessor):
    """Converts the legacy <img>src</img> tag into standard image syntax."""
    priority = 30

    IMG_RE = re.compile(r"<img>\s*([\s\S]*?)\s*</img>")

    def process(self, text: str) -> str:
        return self.IMG_RE.sub(lambda m: f"\n\n![]({m.group(1)})\n\n", text)

class Preprocessor:
    """
    Runs the registered processors in priority order.
    Total: malformed input passes through unchanged, never raises.
    """

    def __init__(self, processors: Optional[List[TextProcessor]] = None):
        self.processors: List[TextProcessor] = []
        for processor in processors if processors is not None else self.default_processors():
            self.add_processor(processor)

    @staticmethod
    def default_processors() -> List[TextProcessor]:
        return [FormulaProcessor(), CodeFenceProcessor(), ImageTagProcessor()]

    def add_processor(self, processor: TextProcessor) -> None:
        self.processors.append(processor)
        self.processors.sort(key=lambda p: p.priority)

    def remove_processor(self, processor_type: Type[TextProcessor]) -> None:
        self.processors = [p for p in self.processors if not isinstance(p, processor_type)]

    def process(self, text: str) -> str:
        result = text
        for processor in self.processors:
            try:
                result = processor.process(result)
            except (re.error, RecursionError) as e:
                logger.warning(f"{type(processor).__name__} skipped: {e}")
        return result

_default_preprocessor = Preprocessor()

def preprocess(raw_text: str) -> str:
    return _default_preprocessor.process(raw_text)
