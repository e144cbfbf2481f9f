from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jubilee import __version__
from jubilee.api.routes import chat, health
from jubilee.application.service import AgentService

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI startup/shutdown events."""
    await logger.ainfo("fastapi.startup", message="Jubilee API starting...")
    yield
    await logger.ainfo("fastapi.shutdown", message="Jubilee API shutting down...")


def create_app(service: AgentService | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Agent service to serve; built from settings on first use when omitted
    """
    app = FastAPI(
        title="Jubilee Agent API",
        description="Triune agent runtime with angel dispatch",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat.router, prefix="/api/v1", tags=["chat"])
    app.include_router(health.router, tags=["health"])

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8070)
