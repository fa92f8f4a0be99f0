from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, settings
from api import sessions, displays
from core.authorization import AllowlistAuthorization
from core.backup import SnapshotBackupTimer
from core.display_sync import DisplaySynchronizer, InMemoryDisplayBoard
from core.locks import ScopeLockRegistry
from core.session_manager import AssignmentEngine
from core.session_store import FileSnapshotStore, build_session_store

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: SQL store 需要先建立資料表
    if settings.store_backend.strip().lower() == "sql":
        Base.metadata.create_all(bind=engine)

    # 測試可以事先放好自己的元件
    if not hasattr(app.state, "display_board"):
        app.state.display_board = InMemoryDisplayBoard()
    if not hasattr(app.state, "engine"):
        app.state.engine = AssignmentEngine(
            store=build_session_store(settings),
            synchronizer=DisplaySynchronizer(app.state.display_board),
            authorization=AllowlistAuthorization(settings.organizer_id_set),
            lock_registry=ScopeLockRegistry(timeout=settings.lock_timeout_seconds),
            default_capacity_per_team=settings.default_capacity_per_team,
        )

    backup_timer = None
    if settings.backup_interval_seconds > 0:
        backup_timer = SnapshotBackupTimer(
            app.state.engine,
            FileSnapshotStore(settings.backup_dir),
            settings.backup_interval_seconds
        )
        backup_timer.start()

    logger.info(f"Team Draw API started with {settings.store_backend} store")
    yield

    # Shutdown
    if backup_timer is not None:
        backup_timer.stop()


app = FastAPI(
    title="Team Draw API",
    description="Live team assignment sessions for chat groups",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions.router)
app.include_router(displays.router)


@app.get("/")
def root():
    return {"message": "Team Draw API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
