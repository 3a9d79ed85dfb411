# models/request_models.py
from pydantic import BaseModel, ConfigDict, Field, field_validator


class CompleteUploadRequest(BaseModel):
    """업로드 완료 요청"""
    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(..., alias="uploadId", json_schema_extra={"example": "1718000000000-1a2b3c4d"})
    total_chunks: int = Field(..., alias="totalChunks", json_schema_extra={"example": 5})
    filename: str = Field(..., json_schema_extra={"example": "slide_042.tif"})

    @field_validator('upload_id', 'filename')
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('must not be empty')
        return v
