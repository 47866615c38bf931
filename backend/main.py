import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config import settings

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Narration engine starting up...")
    yield
    for session_id in session_manager.session_ids():
        session_manager.stop_session(session_id)
    logger.info("Narration engine shutting down.")


app = FastAPI(
    title="Live Narration Engine",
    version="0.1.0",
    description="Screen-reader narration for a running card game",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "service": "narration-engine",
        "version": "0.1.0",
        "sessions": len(session_manager),
    }


from narration.session import session_manager
from routers.host_router import router as host_router

app.include_router(host_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
