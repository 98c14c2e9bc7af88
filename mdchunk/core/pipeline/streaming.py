import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from mdchunk.config.settings import settings
from mdchunk.core.chunk.diff import diff_chunks
from mdchunk.core.chunk.segmenter import SegmentationCancelled
from mdchunk.core.pipeline.rendering import RenderPipeline
from mdchunk.models.chunk import Chunk, ChunkDiff
from mdchunk.models.session import SessionRecord, SessionStatus, SessionUpdate
from mdchunk.storage.cache_manager import render_caches

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[int, List[Chunk], ChunkDiff], None]

class StreamingSession:
    """
    Renders a document that grows as text is streamed in.
    - Every append bumps the version and schedules a full pass on a worker.
    - A pass whose version has been superseded stops at its next cancel check.
    - Only results newer than the last applied version are published, under the lock.
    - on_update runs on the worker while the lock is held; it may read the session or append to it.
    """

    def __init__(self,
                 pipeline: Optional[RenderPipeline] = None,
                 on_update: Optional[UpdateCallback] = None,
                 max_workers: Optional[int] = None):
        self.session_id = uuid.uuid4().hex
        self.pipeline = pipeline or RenderPipeline()
        self.on_update = on_update
        self.created_at = datetime.now(timezone.utc).isoformat()
        self.status = SessionStatus.open

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.streaming.max_workers,
            thread_name_prefix=f"mdchunk-{self.session_id[:8]}"
        )
        self._lock = threading.RLock()
        self._text = ""
        self._version = 0
        self._applied_version = 0
        self._chunks: List[Chunk] = []

    @property
    def version(self) -> int:
        return self._version

    @property
    def applied_version(self) -> int:
        return self._applied_version

    @property
    def text(self) -> str:
        return self._text

    @property
    def chunks(self) -> List[Chunk]:
        with self._lock:
            return list(self._chunks)

    def append(self, delta: str) -> "Future[Optional[SessionUpdate]]":
        return self.schedule(delta)[1]

    def schedule(self, delta: str) -> "Tuple[int, Future[Optional[SessionUpdate]]]":
        """Appends the delta and returns the version it produced with the pending pass."""
        if self.status == SessionStatus.closed:
            raise RuntimeError(f"Session {self.session_id} is closed")
        with self._lock:
            self._text += delta
            self._version += 1
            version = self._version
            text = self._text
        return version, self._executor.submit(self._render, version, text)

    def is_superseded(self, version: int) -> bool:
        return self.status == SessionStatus.closed or self._version > version

    def _render(self, version: int, text: str) -> Optional[SessionUpdate]:
        try:
            chunks = self.pipeline.run(text, cancel_check=lambda: self.is_superseded(version))
        except SegmentationCancelled:
            logger.debug(f"[{self.session_id}] Version {version} superseded, result dropped")
            return None

        with self._lock:
            if version <= self._applied_version:
                logger.debug(f"[{self.session_id}] Version {version} finished after {self._applied_version}, result dropped")
                return None
            diff = diff_chunks(self._chunks, chunks)
            self._chunks = chunks
            self._applied_version = version
            update = SessionUpdate(version=version, chunks=chunks, diff=diff)
            if self.on_update:
                self.on_update(version, chunks, diff)

        logger.info(f"[{self.session_id}] Applied version {version}: {len(diff.changed)} changed, {len(diff.unchanged)} unchanged")
        return update

    def snapshot(self) -> SessionUpdate:
        """Latest applied state, diffed against nothing."""
        with self._lock:
            return SessionUpdate(
                version=self._applied_version,
                chunks=list(self._chunks),
                diff=ChunkDiff(unchanged=list(range(len(self._chunks))))
            )

    def record(self) -> SessionRecord:
        return SessionRecord(
            session_id=self.session_id,
            status=self.status,
            version=self._version,
            applied_version=self._applied_version,
            text_length=len(self._text),
            created_at=self.created_at
        )

    def close(self) -> None:
        """Ends the session; pending passes are cancelled and the render caches are released."""
        if self.status == SessionStatus.closed:
            return
        self.status = SessionStatus.closed
        self._executor.shutdown(wait=True, cancel_futures=True)
        render_caches.clear_all()
        logger.info(f"[{self.session_id}] Session closed")
