import hashlib
import math
import uuid
from rich.text import Text

from mdchunk.models.chunk import Chunk, ChunkKind, CodePayload, ImagePayload, Payload, TablePayload
from mdchunk.models.render import Size

def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()

def _content_part(kind: ChunkKind, rendered_text: Text, payload: Payload) -> str:
    if kind in (ChunkKind.text, ChunkKind.formula):
        return _digest(rendered_text.plain)
    if kind == ChunkKind.code:
        language = payload.language if isinstance(payload, CodePayload) else ""
        return _digest(rendered_text.plain) + language
    if kind == ChunkKind.table:
        contents = payload.contents() if isinstance(payload, TablePayload) else ""
        # An empty table has no content identity; it never compares equal
        return _digest(contents) if contents else uuid.uuid4().hex
    if kind == ChunkKind.image and isinstance(payload, ImagePayload):
        return payload.template + payload.source
    return uuid.uuid4().hex

def compute_fingerprint(index: int,
                        kind: ChunkKind,
                        identity: str,
                        rendered_text: Text,
                        measured_size: Size,
                        payload: Payload = None) -> str:
    """
    index-kind-identity, then a kind-specific content part, then the
    rounded-up height and width. Kinds without a content identity
    (thematic breaks, raw HTML, quotes) get a random token.
    """
    return (
        f"{index}-{int(kind)}-{identity}"
        f"{_content_part(kind, rendered_text, payload)}"
        f"-{math.ceil(measured_size.height)}-{math.ceil(measured_size.width)}"
    )

def fingerprint(chunk: Chunk) -> str:
    return compute_fingerprint(
        chunk.index, chunk.kind, chunk.identity,
        chunk.rendered_text, chunk.measured_size, chunk.payload
    )
