# FastAPI entry point for the compliance assistant
# - Initializes the RAG service at startup (failures are reported, not fatal)
# - Serves endpoints: /api/query, /api/status, /api/initialize, /api/sessions, /api/sessions/{id}, /health
# - Run from backend/: uvicorn app:app --reload

import logging
from contextlib import asynccontextmanager
from typing import List, Dict, Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from exceptions import SessionBusy
from rag_system import RAGOrchestrator
from session_manager import AssistantSession, SessionManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

session_manager = SessionManager()


def _start_service() -> Optional[RAGOrchestrator]:
    try:
        return RAGOrchestrator.get_instance()
    except Exception as e:
        logger.error(f"Failed to initialize RAG service: {e}")
        return RAGOrchestrator.current()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _start_service()
    yield


app = FastAPI(
    title="Compliance Assistant API",
    description="Retrieval-augmented answers to governance, risk and compliance questions.",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class QueryRequest(BaseModel):
    query: str
    session_id: Optional[str] = None


class SourceModel(BaseModel):
    name: str
    content: str
    metadata: Dict[str, Any]
    score: Optional[float] = None


class QueryResponse(BaseModel):
    answer: str
    sources: List[SourceModel]
    session_id: Optional[str] = None
    error: bool = False


class StatusResponse(BaseModel):
    state: str
    document_count: int
    error: Optional[str] = None


@app.post("/api/query", response_model=QueryResponse, tags=["Assistant"])
def query_documents(request: QueryRequest):
    """Ask the assistant a question within a session."""
    if not request.query.strip():
        raise HTTPException(status_code=422, detail="Query must not be empty")

    orchestrator = RAGOrchestrator.current()
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="AI service is unavailable")

    if request.session_id:
        session = session_manager.get_session(request.session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Unknown session '{request.session_id}'")
    else:
        # One-off question: the session is not registered and is dropped with the request
        session = AssistantSession(orchestrator)

    try:
        reply = session.send(request.query)
    except SessionBusy as e:
        raise HTTPException(status_code=409, detail=str(e))

    return QueryResponse(
        answer=reply.content,
        sources=[SourceModel(**source.to_dict()) for source in (reply.sources or [])],
        session_id=session.session_id,
        error=reply.is_error,
    )


@app.get("/api/status", response_model=StatusResponse, tags=["Assistant"])
def get_status():
    """Report the RAG service state."""
    orchestrator = RAGOrchestrator.current()
    if orchestrator is None:
        return StatusResponse(state="unavailable", document_count=0, error="AI service could not be created")
    return StatusResponse(**orchestrator.get_status())


@app.post("/api/initialize", response_model=StatusResponse, tags=["Assistant"])
def retry_initialization():
    """Start a fresh initialization attempt after a failure."""
    try:
        RAGOrchestrator.get_instance(retry=True)
    except Exception as e:
        logger.error(f"Re-initialization failed: {e}")
    return get_status()


@app.post("/api/sessions", tags=["Assistant"])
def open_session():
    """Start a conversation session; close it with DELETE when the view goes away."""
    orchestrator = RAGOrchestrator.current()
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="AI service is unavailable")
    session = session_manager.create_session(orchestrator)
    return {"session_id": session.session_id}


@app.delete("/api/sessions/{session_id}", tags=["Assistant"])
def close_session(session_id: str):
    """Discard a conversation session."""
    if not session_manager.close_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return {"status": "closed", "session_id": session_id}


@app.get("/health", tags=["Utility"])
def health():
    """Health check endpoint."""
    return {"status": "ok"}
