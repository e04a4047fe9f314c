"""
FastAPI Router for the assistant
Metadata, query, chat and visualization endpoints under /api
"""
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from askdata.core.logger import get_logger
from askdata.db.metadata import DatabaseMetadata

from .chart_generator import ChartSpecBuilder
from .chatbot_core import ConversationOrchestrator
from .credentials import CredentialStore
from .errors import ServiceUnavailable
from .llm_providers import LLMProvider

logger = get_logger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["Assistant"])


# Pydantic models for request bodies
class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QueryRequest(_RequestModel):
    """Request model for direct query execution"""
    database_id: Optional[str] = Field(default=None, alias="databaseId")
    query: Optional[str] = None


class ChatRequest(_RequestModel):
    """Request model for a chat turn"""
    messages: List[Any] = Field(default_factory=list)
    database_id: Optional[str] = Field(default=None, alias="databaseId")
    context: Any = None


class VisualizeRequest(_RequestModel):
    """Request model for a visualization suggestion"""
    data: Optional[List[Any]] = None
    query: Optional[str] = None


# Dependency placeholders (configured by the application factory)
_metadata: Optional[DatabaseMetadata] = None
_provider: Optional[LLMProvider] = None
_credentials: Optional[CredentialStore] = None
_orchestrator: Optional[ConversationOrchestrator] = None


def configure_dependencies(
    metadata: DatabaseMetadata,
    provider: LLMProvider,
    credentials: Optional[CredentialStore] = None,
    chart_builder: Optional[ChartSpecBuilder] = None,
) -> None:
    """
    Configure dependencies for the assistant router

    Args:
        metadata: Connection registry and execution collaborator
        provider: Chat model collaborator
        credentials: Credential cell reported by the health check
        chart_builder: Optional custom chart builder
    """
    global _metadata, _provider, _credentials, _orchestrator

    _metadata = metadata
    _provider = provider
    _credentials = credentials
    _orchestrator = ConversationOrchestrator(provider, metadata, chart_builder=chart_builder)


def get_metadata() -> DatabaseMetadata:
    if _metadata is None:
        raise RuntimeError("Metadata not configured. Call configure_dependencies() first.")
    return _metadata


def get_orchestrator() -> ConversationOrchestrator:
    """Get orchestrator instance, refusing model calls when no credential is configured"""
    if _orchestrator is None:
        raise RuntimeError("Assistant not initialized. Call configure_dependencies() first.")
    if not _orchestrator.provider.available:
        raise ServiceUnavailable("LLM API service not available")
    return _orchestrator


# Routes
@router.get("/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "llmApi": "connected" if _provider is not None and _provider.available else "disconnected",
        "credentialRefreshedAt": (
            _credentials.refreshed_at.isoformat()
            if _credentials is not None and _credentials.refreshed_at
            else None
        ),
        "metadataConfigured": _metadata is not None,
    }


@router.get("/databases")
def list_databases():
    """List configured connections"""
    return [
        {
            "id": db.get("id"),
            "name": db.get("name"),
            "type": db.get("type"),
            "status": "connected",
        }
        for db in get_metadata().list_databases()
    ]


@router.post("/databases/refresh")
def refresh_databases():
    """Reload metadata and validate every connection"""
    metadata = get_metadata().refresh_metadata()
    return {
        "success": True,
        "message": "Metadata refreshed",
        "databases": len(metadata["databases"]),
    }


@router.get("/databases/{database_id}/schema")
def database_schema(database_id: str):
    """Return the table list for one connection"""
    db = get_metadata().get_database(database_id)
    return {
        "id": db.get("id"),
        "name": db.get("name"),
        "type": db.get("type"),
        "tables": db.get("tables") or [],
        "schema": db.get("schema"),
    }


@router.post("/query")
def execute_query(payload: QueryRequest):
    """Execute SQL against a configured connection"""
    if not payload.database_id or not payload.query:
        raise HTTPException(status_code=400, detail="Missing required fields")

    rows = get_metadata().execute_query(payload.database_id, payload.query)
    return {"success": True, "data": rows}


@router.post("/chat")
async def chat(payload: ChatRequest):
    """
    One chat turn

    Returns:
    - response: {message, query, visualization}
    - usage: token usage reported by the model
    """
    orchestrator = get_orchestrator()
    reply = await orchestrator.chat(payload.messages, payload.database_id, payload.context)
    return {"success": True, "response": reply.to_payload(), "usage": reply.usage}


@router.post("/visualize")
async def visualize(payload: VisualizeRequest):
    """Ask the model for a chart hint; an unparseable suggestion is an error"""
    if payload.data is None:
        raise HTTPException(status_code=400, detail="Missing required fields")

    orchestrator = get_orchestrator()
    hint = await orchestrator.suggest_visualization(payload.data, payload.query)
    return {"success": True, "visualization": hint.to_payload()}


@router.post("/ask")
async def ask(payload: ChatRequest):
    """
    Full pipeline: chat, execute the proposed query, build the chart

    Returns:
    - response: reply text
    - query / data: generated SQL and its rows (if any)
    - chart: chart specification, built by the fallback heuristic when no hint is usable
    - notice: user-visible note when the query failed or returned nothing
    """
    if not payload.database_id:
        raise HTTPException(status_code=400, detail="Missing required fields")

    orchestrator = get_orchestrator()
    result = await orchestrator.answer(payload.messages, payload.database_id, payload.context)
    return {"success": True, **result.to_payload()}
