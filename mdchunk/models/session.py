from enum import Enum
from pydantic import BaseModel, ConfigDict

from mdchunk.models.chunk import Chunk, ChunkDiff

class SessionStatus(str, Enum):
    open = "open"
    closed = "closed"

class SessionUpdate(BaseModel):
    """Result of one applied render pass of a streaming session."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    version: int
    chunks: list[Chunk]
    diff: ChunkDiff

class SessionRecord(BaseModel):
    session_id: str
    status: SessionStatus
    version: int                     # last version appended
    applied_version: int             # last version whose chunks were published
    text_length: int
    created_at: str
