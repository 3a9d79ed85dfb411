# routes/upload.py
from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from dzi_ingest.errors import IngestionError
from dzi_ingest.models.request_models import CompleteUploadRequest
from dzi_ingest.models.response_models import (
    ChunkUploadResponse,
    CompleteUploadResponse,
    ErrorResponse,
    InitUploadResponse,
    UploadStatusResponse,
)
from dzi_ingest.utils import logger, log_error, log_request, log_response

router = APIRouter(prefix="/upload", tags=["upload"])

# lifespan에서 주입
orchestrator = None


def _require_orchestrator():
    if orchestrator is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return orchestrator


def _error_response(error: IngestionError) -> JSONResponse:
    log_response(error.status_code, f"{error.stage}: {error.message}")
    body = ErrorResponse(error=error.message)
    return JSONResponse(status_code=error.status_code, content=body.model_dump())


@router.post("/init", response_model=InitUploadResponse)
async def init_upload():
    """업로드 세션 시작"""
    service = _require_orchestrator()
    session = service.open_session()
    return InitUploadResponse(upload_id=session.id)


@router.post(
    "/chunk",
    response_model=ChunkUploadResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 413: {"model": ErrorResponse}},
)
async def upload_chunk(
    upload_id: str = Form(..., alias="uploadId"),
    chunk_index: int = Form(..., alias="chunkIndex"),
    chunk: UploadFile = File(...),
):
    """청크 하나 저장 (같은 index 재전송 시 덮어쓰기)"""
    service = _require_orchestrator()

    try:
        # 크기를 아는 경우 읽기 전에 거절
        if chunk.size is not None:
            service.admit_chunk(upload_id, chunk_index, chunk.size)

        data = await chunk.read()
        log_request("POST", "/upload/chunk", {"uploadId": upload_id, "chunkIndex": chunk_index, "chunk": data})
        size = await service.receive_chunk(upload_id, chunk_index, data)
        logger.debug(f"[CHUNK] session={upload_id}, index={chunk_index}, bytes={size}")
        return ChunkUploadResponse(success=True)

    except IngestionError as e:
        return _error_response(e)
    except Exception as e:
        log_error(e, f"CHUNK {upload_id}/{chunk_index}")
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        await chunk.close()


@router.get(
    "/{upload_id}/status",
    response_model=UploadStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_upload_status(upload_id: str):
    """수신된 청크 index 조회"""
    service = _require_orchestrator()

    try:
        session, indices = service.received_indices(upload_id)
    except IngestionError as e:
        return _error_response(e)

    return UploadStatusResponse(
        upload_id=session.id,
        created_at=session.created_at.isoformat(),
        received_chunks=indices,
    )


@router.post(
    "/complete",
    response_model=CompleteUploadResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def complete_upload(request: CompleteUploadRequest):
    """청크 조립 → DZI 생성 → 레지스트리 등록"""
    service = _require_orchestrator()

    log_request("POST", "/upload/complete", request.model_dump(by_alias=True))

    try:
        result = await service.complete(request.upload_id, request.total_chunks, request.filename)
    except IngestionError as e:
        return _error_response(e)
    except Exception as e:
        log_error(e, f"COMPLETE {request.upload_id}")
        body = ErrorResponse(error=f"Upload failed: {e}")
        return JSONResponse(status_code=500, content=body.model_dump())

    log_response(200, result.dzi_path)
    return CompleteUploadResponse(
        success=True,
        dzi_path=result.dzi_path,
        dzi_base_name=result.dzi_base_name,
    )
