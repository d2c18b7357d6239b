from datetime import datetime
from typing import Any, List, Optional
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from config import Config, configure_logging
from core.errors import InvalidRequestError, OrchestratorError, ThreadNotFoundError
from core.types import Message
from orchestrator import Orchestrator, build_orchestrator


# Request Models
class MessageIn(BaseModel):
    role: str = Field(..., description="'user', 'assistant' or 'tool'")
    content: str
    origin: Optional[str] = Field(default=None, description="Origin tag, defaults from role")


class OrchestrateRequest(BaseModel):
    query: Optional[str] = Field(default=None, description="The research query (required to start a turn)")
    messages: List[MessageIn] = Field(default_factory=list, description="Prior history for a new thread")
    thread_id: Optional[str] = Field(default=None, description="Thread identifier")
    resume_payload: Any = Field(default=None, description="Human resolution for a suspended thread")

    @property
    def is_resume(self) -> bool:
        # An explicit null payload still selects the resume path
        return bool(self.thread_id) and "resume_payload" in self.model_fields_set


def parse_history(messages: List[MessageIn], thread_id: Optional[str]) -> List[Message]:
    """Convert caller-supplied history, rejecting unknown roles or origins."""
    history = []
    for index, item in enumerate(messages):
        try:
            history.append(Message.from_dict(item.model_dump(exclude_none=True)))
        except ValueError as e:
            raise InvalidRequestError(f"messages[{index}] is invalid: {e}", thread_id=thread_id) from e
    return history


def create_app(config: Optional[Config] = None, orchestrator: Optional[Orchestrator] = None) -> FastAPI:
    """Build the API around one orchestrator instance."""
    config = config or Config.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(config.log_level)
        app.state.orchestrator = orchestrator or build_orchestrator(config)
        logger.info("Research Orchestrator API starting (thread store: {})", config.thread_store)
        yield
        await app.state.orchestrator.store.close()
        logger.info("Research Orchestrator API shutting down")

    app = FastAPI(
        title="Supervised Research Orchestrator",
        description="""
    A supervisor/worker research system with human-in-the-loop search approval:
    - **Supervisor**: decides each step whether to delegate or finalize
    - **Research Worker**: searches external knowledge sources; every search needs confirmation
    - **Reasoning Worker**: synthesizes and critiques gathered information

    Suspended threads are resumed by posting a `resume_payload` with the thread id.
    """,
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(OrchestratorError)
    async def orchestrator_error_handler(request: Request, exc: OrchestratorError):
        body = {"error": exc.message, "error_code": exc.error_code}
        if exc.thread_id:
            body["thread_id"] = exc.thread_id
        return JSONResponse(status_code=exc.status_code, content=body)

    def get_orchestrator(request: Request) -> Orchestrator:
        return request.app.state.orchestrator

    @app.get("/")
    async def root():
        return {
            "name": "Supervised Research Orchestrator",
            "version": "1.0.0",
            "status": "running",
            "nodes": ["supervisor", "research_worker", "reasoning_worker"],
        }

    @app.get("/api")
    async def api_info():
        """API info endpoint."""
        return {
            "name": "Supervised Research Orchestrator",
            "version": "1.0.0",
            "endpoints": ["POST /orchestrate", "GET /threads/{thread_id}", "GET /health"],
            "features": [
                "Supervisor/worker delegation",
                "Human confirmation before every search",
                "Durable suspend and resume per thread",
                "Web and academic search via Tavily",
            ],
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "llm_provider": config.llm_provider,
            "anthropic_configured": bool(config.anthropic_api_key),
            "openai_configured": bool(config.openai_api_key),
            "tavily_configured": bool(config.tavily_api_key),
            "thread_store": config.thread_store,
        }

    @app.post("/orchestrate")
    async def orchestrate(request: OrchestrateRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
        """
        Start a turn, or resume a suspended thread.

        ``resume_payload`` together with ``thread_id`` resumes; anything else
        starts a turn and requires a non-empty ``query``.
        """
        if request.is_resume:
            result = await orchestrator.resume(request.thread_id, request.resume_payload)
        else:
            history = parse_history(request.messages, request.thread_id)
            result = await orchestrator.start(request.query or "", thread_id=request.thread_id, history=history)
        return result.to_response()

    @app.get("/threads/{thread_id}")
    async def get_thread(thread_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
        """Inspect a thread's latest snapshot."""
        try:
            snapshot = await orchestrator.get_thread(thread_id)
        except ThreadNotFoundError:
            raise HTTPException(status_code=404, detail="Thread not found")
        return snapshot.to_dict()

    return app


app = create_app()


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
