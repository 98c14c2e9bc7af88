from abc import ABC, abstractmethod
from typing import Any, List, Optional

class RenderCacheStore(ABC):
    """
    Content-addressed store for rendered artifacts. Keys are normalized
    source fragments; entries are immutable once inserted.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, artifact: Any, cost: int = 0) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def clear_all(self) -> None:
        """Drops every entry. Called when a rendering session ends."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """Returns keys from least to most recently used."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
