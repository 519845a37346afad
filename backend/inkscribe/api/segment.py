"""POST /api/segment: glyph bounding boxes for an ink image."""

from __future__ import annotations

import asyncio
import time

from fastapi import APIRouter, HTTPException

from inkscribe.dependencies import get_executor
from inkscribe.engine.config import SegConfig
from inkscribe.engine.segmenter import segment
from inkscribe.models.requests import SegConfigModel, SegmentRequest
from inkscribe.models.responses import BoxModel, SegmentResponse
from inkscribe.utils.raster import decode_image

router = APIRouter()


def seg_config_from(model: SegConfigModel | None) -> SegConfig:
    if model is None:
        return SegConfig()
    return SegConfig(**model.model_dump())


@router.post("/segment", response_model=SegmentResponse)
async def segment_image(req: SegmentRequest) -> SegmentResponse:
    start = time.perf_counter()
    try:
        image = decode_image(req.image)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    cfg = seg_config_from(req.config)
    loop = asyncio.get_running_loop()
    boxes = await loop.run_in_executor(get_executor(), segment, image, cfg)

    elapsed = (time.perf_counter() - start) * 1000
    return SegmentResponse(
        width=image.shape[1],
        height=image.shape[0],
        boxes=[BoxModel.from_box(b) for b in boxes],
        processing_time_ms=round(elapsed, 1),
    )
