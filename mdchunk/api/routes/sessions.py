import logging
from typing import Dict
from fastapi import APIRouter, Depends, Request, HTTPException

from mdchunk.config.settings import settings
from mdchunk.core.pipeline.streaming import StreamingSession
from mdchunk.models.api import AppendRequest, AppendResponse, ChunkView, SessionCreated
from mdchunk.models.session import SessionRecord

router = APIRouter()
logger = logging.getLogger(__name__)

def get_sessions(request: Request) -> Dict[str, StreamingSession]:
    return request.app.state.sessions

def get_session(session_id: str, sessions: Dict[str, StreamingSession] = Depends(get_sessions)) -> StreamingSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session

@router.post("/sessions", response_model=SessionCreated, summary="Open a streaming render session")
def create_session(request: Request, sessions: Dict[str, StreamingSession] = Depends(get_sessions)):
    if len(sessions) >= settings.streaming.max_sessions:
        raise HTTPException(status_code=429, detail="Too many open sessions")

    session = StreamingSession(pipeline=request.app.state.session_pipeline_factory())
    sessions[session.session_id] = session
    logger.info(f"Opened session {session.session_id} ({len(sessions)} open)")
    return SessionCreated(session_id=session.session_id)

@router.get("/sessions/{session_id}", response_model=SessionRecord, summary="Get the state of a streaming session")
def get_session_status(session: StreamingSession = Depends(get_session)):
    return session.record()

@router.post("/sessions/{session_id}/append", response_model=AppendResponse, summary="Append streamed text and re-render")
def append_text(request_data: AppendRequest, session: StreamingSession = Depends(get_session)):
    """
    Waits for the pass scheduled by this append. If a newer append
    superseded it, the latest applied state is returned instead.
    """
    try:
        version, future = session.schedule(request_data.text)
        update = future.result()
        if update is None:
            update = session.snapshot()

        return AppendResponse(
            session_id=session.session_id,
            version=version,
            applied_version=update.version,
            chunks=[ChunkView.from_chunk(c) for c in update.chunks],
            changed=update.diff.changed,
            removed=update.diff.removed
        )

    except Exception as e:
        logger.exception(f"Append failed for session {session.session_id}")
        raise HTTPException(status_code=500, detail=str(e))

@router.delete("/sessions/{session_id}", summary="Close a streaming session and release render caches")
def close_session(session_id: str, sessions: Dict[str, StreamingSession] = Depends(get_sessions)):
    session = sessions.pop(session_id, None)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    session.close()
    return {"status": "success", "message": f"Session {session_id} closed."}
