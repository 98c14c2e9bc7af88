from enum import IntEnum
from typing import Any, Union
from pydantic import BaseModel, ConfigDict, Field
from rich.text import Text

from mdchunk.models.render import RenderResult, Size

class ChunkKind(IntEnum):
    # Values are the kind ordinals that feed fingerprints.
    text = 0
    code = 1
    table = 2
    block_quote = 3
    thematic_break = 4
    image = 5
    formula = 6
    raw_html = 7

class CodePayload(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    language: str = ""
    code: str = ""
    highlighted: Text
    code_size: Size = Size()

class TablePayload(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    headers: list[Text] = []
    rows: list[list[Text]] = []
    row_heights: list[float] = []            # header row first, then body rows

    def contents(self) -> str:
        """Concatenated plain text of every header and body cell."""
        parts = [cell.plain for cell in self.headers]
        for row in self.rows:
            parts.extend(cell.plain for cell in row)
        return "".join(parts)

class FormulaPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    result: RenderResult

class TextPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    formulas: list[FormulaPayload] = []

class ImagePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    template: str = ""
    source: str = ""

Payload = Union[TextPayload, CodePayload, TablePayload, FormulaPayload, ImagePayload, None]

class Chunk(BaseModel):
    """
    Unit of incremental rendering. Immutable once produced; two chunks are
    equal iff their identity and fingerprint match.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    index: int
    kind: ChunkKind
    identity: str
    source_nodes: list[Any] = Field(default_factory=list)   # markdown_it SyntaxTreeNode
    rendered_text: Text = Field(default_factory=Text)
    measured_size: Size = Size()
    payload: Payload = None
    fingerprint: str = ""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Chunk):
            return NotImplemented
        return self.identity == other.identity and self.fingerprint == other.fingerprint

    def __hash__(self) -> int:
        return hash((self.identity, self.fingerprint))

    @classmethod
    def create(cls, **fields: Any) -> "Chunk":
        """Builds a chunk with its fingerprint computed from the given fields."""
        return cls(**fields)._updated()

    @property
    def plain_text(self) -> str:
        return self.rendered_text.plain

    def with_index(self, index: int) -> "Chunk":
        return self._updated(index=index)

    def with_layout(self, size: Size) -> "Chunk":
        return self._updated(measured_size=size)

    def _updated(self, **changes: Any) -> "Chunk":
        # Imported here: the fingerprint module depends on this one
        from mdchunk.core.chunk.fingerprint import compute_fingerprint

        draft = self.model_copy(update=changes)
        return draft.model_copy(update={"fingerprint": compute_fingerprint(
            draft.index, draft.kind, draft.identity,
            draft.rendered_text, draft.measured_size, draft.payload
        )})

class ChunkDiff(BaseModel):
    changed: list[int] = []          # indices in the new list that need re-rendering
    unchanged: list[int] = []
    removed: list[int] = []          # indices past the end of the new list

    @property
    def is_empty(self) -> bool:
        return not self.changed and not self.removed
