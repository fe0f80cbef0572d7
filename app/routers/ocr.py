"""OCR API — license plate recognition for patrol officers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from ..dependencies import require_permission
from ..models import User
from ..services.ocr_service import (
    InvalidImageError,
    OCREngineError,
    decode_data_url,
    recognize_plate,
)

router = APIRouter(tags=["ocr"])
log = logging.getLogger(__name__)


class RecognizeRequest(BaseModel):
    image: str | None = None


@router.post("/api/ocr/recognize")
async def recognize(
    body: RecognizeRequest,
    user: User = Depends(require_permission("passes:view_all", "violations:create")),
):
    try:
        image_bytes = decode_data_url(body.image)
    except InvalidImageError as e:
        raise HTTPException(400, str(e))

    try:
        result = await run_in_threadpool(recognize_plate, image_bytes)
    except OCREngineError:
        log.exception("OCR processing error")
        raise HTTPException(500, "Failed to process image")
    return result.to_dict()
