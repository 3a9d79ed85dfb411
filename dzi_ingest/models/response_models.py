# models/response_models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List


class InitUploadResponse(BaseModel):
    """세션 시작 응답"""
    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(..., alias="uploadId")


class ChunkUploadResponse(BaseModel):
    """청크 업로드 응답"""
    success: bool


class CompleteUploadResponse(BaseModel):
    """업로드 완료 응답"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    dzi_path: str = Field(..., alias="dziPath")
    dzi_base_name: str = Field(..., alias="dziBaseName")


class ErrorResponse(BaseModel):
    """실패 응답"""
    success: bool = False
    error: str


class UploadStatusResponse(BaseModel):
    """세션 상태 응답"""
    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(..., alias="uploadId")
    created_at: str = Field(..., alias="createdAt")
    received_chunks: List[int] = Field(..., alias="receivedChunks")


class HealthResponse(BaseModel):
    """헬스 체크 응답"""
    model_config = ConfigDict(populate_by_name=True)

    status: str
    registry: str
    live_sessions: int = Field(..., alias="liveSessions")
