# routes/images.py
from typing import List

from fastapi import APIRouter, HTTPException

from dzi_ingest.models.records import ImageRecord
from dzi_ingest.utils import logger

router = APIRouter(prefix="/images", tags=["images"])

# lifespan에서 주입
registry = None


@router.get("/uploaded", response_model=List[ImageRecord])
async def list_uploaded_images():
    """업로드된 이미지 목록 (저장소가 비었거나 손상되면 빈 배열)"""
    if registry is None:
        raise HTTPException(status_code=500, detail="Service not initialized")

    records = await registry.list_all()
    logger.debug(f"[IMAGES] {len(records)} record(s)")
    return records
