# main.py
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dzi_ingest.config.settings import Settings, settings
from dzi_ingest.tile_interface.factory import TileEngineFactory
import dzi_ingest.tile_engines  # 엔진 자동 등록

from dzi_ingest.models.response_models import HealthResponse
from dzi_ingest.routes import images, upload
from dzi_ingest.services.assembler import Assembler
from dzi_ingest.services.format_gate import FormatGate
from dzi_ingest.services.ingestion_service import IngestionOrchestrator
from dzi_ingest.services.session_sweeper import SessionSweeper
from dzi_ingest.services.tile_generator import TilePyramidGenerator
from dzi_ingest.storage.chunk_store import ChunkStore
from dzi_ingest.storage.image_registry import ImageRegistryBase, JsonImageRegistry
from dzi_ingest.storage.postgres_registry import PostgresImageRegistry
from dzi_ingest.storage.session_registry import UploadSessionRegistry
from dzi_ingest.utils import logger
from dzi_ingest.utils.temp_file_manager import cleanup_orphaned_scratch


async def build_registry(cfg: Settings) -> ImageRegistryBase:
    if cfg.REGISTRY_BACKEND == "postgres":
        pool = await asyncpg.create_pool(
            host=cfg.POSTGRES_HOST,
            port=cfg.POSTGRES_PORT,
            database=cfg.POSTGRES_DB,
            user=cfg.POSTGRES_USER,
            password=cfg.POSTGRES_PASSWORD,
            min_size=1,
            max_size=10
        )
        registry = PostgresImageRegistry(pool)
        await registry.ensure_schema()
        return registry

    return JsonImageRegistry(cfg.REGISTRY_PATH)


def build_engine(cfg: Settings, executor: Optional[ThreadPoolExecutor] = None):
    options = dict(
        tile_size=cfg.TILE_SIZE,
        overlap=cfg.TILE_OVERLAP,
        tile_format=cfg.TILE_FORMAT,
        quality=cfg.TILE_QUALITY,
    )
    if cfg.TILE_ENGINE == "pillow":
        options["executor"] = executor
    elif cfg.TILE_ENGINE == "vips":
        options["vips_path"] = cfg.VIPS_PATH
    return TileEngineFactory.create(cfg.TILE_ENGINE, **options)


def build_orchestrator(
    cfg: Settings,
    registry: ImageRegistryBase,
    executor: Optional[ThreadPoolExecutor] = None,
) -> IngestionOrchestrator:
    chunk_store = ChunkStore(cfg.UPLOAD_DIR)
    return IngestionOrchestrator(
        sessions=UploadSessionRegistry(),
        chunk_store=chunk_store,
        format_gate=FormatGate(cfg.ALLOWED_EXTENSIONS),
        assembler=Assembler(chunk_store, cfg.UPLOAD_DIR, delete_consumed=not cfg.DEFER_CHUNK_CLEANUP),
        generator=TilePyramidGenerator(build_engine(cfg, executor), cfg.TILES_DIR),
        registry=registry,
        dzi_url_prefix=cfg.DZI_URL_PREFIX,
        max_total_chunks=cfg.MAX_TOTAL_CHUNKS,
        max_chunk_bytes=cfg.MAX_CHUNK_BYTES,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup and shutdown events.

    Startup:
    - Create the image registry (JSON document or PostgreSQL)
    - Build the orchestrator with a bounded tiling thread pool
    - Inject dependencies into the route modules
    - Clean up orphaned scratch files and staging dirs
    - Start the session expiry sweeper

    Shutdown:
    - Stop the sweeper, drain the tiling pool, close the registry

    IMPORTANT: Run with single worker; sessions and the registry lock are per process
    uvicorn dzi_ingest.main:app --host 0.0.0.0 --port 5174 --workers 1
    """
    # Startup
    registry = await build_registry(settings)
    executor = ThreadPoolExecutor(max_workers=settings.TILE_WORKERS, thread_name_prefix="tiler")
    orchestrator = build_orchestrator(settings, registry, executor)

    upload.orchestrator = orchestrator
    images.registry = registry

    cleanup_orphaned_scratch(settings.UPLOAD_DIR, max_age_hours=settings.SESSION_TTL_HOURS)
    orchestrator.generator.cleanup_staging()

    sweeper = SessionSweeper(
        orchestrator,
        settings.UPLOAD_DIR,
        session_ttl=timedelta(hours=settings.SESSION_TTL_HOURS),
        interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
    )
    await sweeper.start_worker()

    yield  # Server runs

    # Shutdown
    await sweeper.shutdown()
    await orchestrator.generator.engine.shutdown()
    executor.shutdown(wait=True)
    await registry.close()
    upload.orchestrator = None
    images.registry = None


# FastAPI 앱
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info(
    f"{settings.API_TITLE} | tile engine: {settings.TILE_ENGINE} "
    f"(available: {TileEngineFactory.list_engines()}) | registry: {settings.REGISTRY_BACKEND}"
)

# 라우터 등록
app.include_router(upload.router)
app.include_router(images.router)

@app.get("/")
async def root():
    """헬스 체크"""
    return {
        "service": settings.API_TITLE,
        "status": "running",
        "version": settings.API_VERSION,
        "tile_engine": settings.TILE_ENGINE,
        "available_engines": TileEngineFactory.list_engines(),
        "registry_backend": settings.REGISTRY_BACKEND,
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    registry_status = "not_initialized"
    if images.registry is not None:
        registry_status = await images.registry.health_check()

    live_sessions = len(upload.orchestrator.sessions) if upload.orchestrator is not None else 0
    overall_status = "healthy" if registry_status in ("ok", "connected") else "degraded"

    return HealthResponse(
        status=overall_status,
        registry=registry_status,
        live_sessions=live_sessions,
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVER_PORT, log_level=settings.LOG_LEVEL.lower())
