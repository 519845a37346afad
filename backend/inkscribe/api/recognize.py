"""POST /api/recognize: one-shot recognition of an ink image."""

from __future__ import annotations

import asyncio
import logging
from functools import partial

from fastapi import APIRouter, Depends, HTTPException

from inkscribe.api.segment import seg_config_from
from inkscribe.dependencies import get_executor, get_recognizer, recognize_config
from inkscribe.engine.pipeline import MODE_SPLIT, GlyphPipeline
from inkscribe.models.requests import RecognizeRequest
from inkscribe.models.responses import RecognizeResponse
from inkscribe.recognizer.base import Recognizer, RecognizerFailure
from inkscribe.utils.raster import composite_on_white, decode_image

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/recognize", response_model=RecognizeResponse)
async def recognize(
    req: RecognizeRequest,
    recognizer: Recognizer = Depends(get_recognizer),
) -> RecognizeResponse:
    try:
        white = composite_on_white(decode_image(req.image))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    pipeline = GlyphPipeline(
        recognizer,
        seg_config=seg_config_from(req.config),
        recognize_config=recognize_config(),
    )
    split = req.mode == MODE_SPLIT

    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(
            get_executor(), partial(pipeline.run, white, split, req.preview)
        )
    except RecognizerFailure as e:
        logger.warning("Recognition failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Error: {e}") from e

    return RecognizeResponse.from_result(result)
