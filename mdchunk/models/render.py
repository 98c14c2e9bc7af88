from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict

class Size(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: float = 0
    height: float = 0

    @classmethod
    def zero(cls) -> "Size":
        return cls(width=0, height=0)

class RenderStrategy(str, Enum):
    fast = "fast"
    fallback = "fallback"
    cache = "cache"

class RenderResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    artifact: Any = None                     # PIL.Image.Image on success
    size: Size = Size()
    success: bool
    error: str | None = None
    strategy: RenderStrategy | None = None

    @classmethod
    def failure(cls, error: Exception | str, strategy: RenderStrategy | None = None) -> "RenderResult":
        return cls(artifact=None, size=Size.zero(), success=False, error=str(error), strategy=strategy)
