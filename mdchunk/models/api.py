import base64
import io
from pydantic import BaseModel

from mdchunk.models.chunk import Chunk, CodePayload, FormulaPayload, ImagePayload, TextPayload
from mdchunk.models.render import RenderResult

class RenderRequest(BaseModel):
    markdown: str
    max_width: float | None = None           # None = configured container width

class FormulaRequest(BaseModel):
    formula: str

class AppendRequest(BaseModel):
    text: str

class FormulaResponse(BaseModel):
    success: bool
    strategy: str | None = None
    width: float = 0
    height: float = 0
    image_base64: str | None = None         # PNG
    error: str | None = None

    @classmethod
    def from_result(cls, result: RenderResult) -> "FormulaResponse":
        image_base64 = None
        if result.success and result.artifact is not None:
            buffer = io.BytesIO()
            result.artifact.save(buffer, format="PNG")
            image_base64 = base64.b64encode(buffer.getvalue()).decode("ascii")
        return cls(
            success=result.success,
            strategy=result.strategy.value if result.strategy else None,
            width=result.size.width,
            height=result.size.height,
            image_base64=image_base64,
            error=result.error
        )

class FormulaView(BaseModel):
    source: str
    success: bool
    strategy: str | None = None
    width: float = 0
    height: float = 0
    error: str | None = None

    @classmethod
    def from_payload(cls, payload: FormulaPayload) -> "FormulaView":
        result = payload.result
        return cls(
            source=payload.source,
            success=result.success,
            strategy=result.strategy.value if result.strategy else None,
            width=result.size.width,
            height=result.size.height,
            error=result.error
        )

class ChunkView(BaseModel):
    index: int
    kind: str
    identity: str
    fingerprint: str
    text: str
    width: float
    height: float
    language: str | None = None             # code chunks
    image_source: str | None = None         # image chunks
    formulas: list[FormulaView] = []

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> "ChunkView":
        payload = chunk.payload
        formulas = []
        if isinstance(payload, TextPayload):
            formulas = [FormulaView.from_payload(f) for f in payload.formulas]
        elif isinstance(payload, FormulaPayload):
            formulas = [FormulaView.from_payload(payload)]
        return cls(
            index=chunk.index,
            kind=chunk.kind.name,
            identity=chunk.identity,
            fingerprint=chunk.fingerprint,
            text=chunk.plain_text,
            width=chunk.measured_size.width,
            height=chunk.measured_size.height,
            language=payload.language if isinstance(payload, CodePayload) else None,
            image_source=payload.template + payload.source if isinstance(payload, ImagePayload) else None,
            formulas=formulas
        )

class RenderResponse(BaseModel):
    chunks: list[ChunkView]
    total_chunks: int

class SessionCreated(BaseModel):
    session_id: str

class AppendResponse(BaseModel):
    session_id: str
    version: int                             # version produced by this append
    applied_version: int                     # version the returned chunks belong to
    chunks: list[ChunkView]
    changed: list[int]
    removed: list[int]
