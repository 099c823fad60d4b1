"""
Frame API Routes

Endpoints for analyzing camera frames and resetting analysis sessions.
"""

import base64
import binascii

import cv2
import numpy as np
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from loguru import logger

from shelfspace.api.dependencies import SessionRegistry, get_session_registry
from shelfspace.api.schemas import (
    AnalysisResponse,
    ErrorResponse,
    RawFrameRequest,
    SessionResetResponse,
)
from shelfspace.exceptions import InvalidBufferError
from shelfspace.service import FrameAnalysis
from shelfspace.vision.pixel_buffer import PixelBuffer


router = APIRouter(tags=["frames"])


def _to_response(session_id: str, analysis: FrameAnalysis) -> AnalysisResponse:
    return AnalysisResponse(
        session_id=session_id,
        frame_index=analysis.frame_index,
        processing_time_ms=analysis.processing_time_ms,
        **analysis.to_dict(),
    )


# =============================================================================
# Frame Endpoints
# =============================================================================

@router.post(
    "/frames",
    response_model=AnalysisResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid image"},
        413: {"model": ErrorResponse, "description": "Image too large"},
    },
)
async def analyze_frame(
    file: UploadFile = File(..., description="Encoded camera frame"),
    session_id: str = Form("default", min_length=1, max_length=128),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Analyze an encoded image (JPEG, PNG, WebP) as the next frame of a session.
    """
    settings = registry.settings
    supported = {t.strip() for t in settings.allowed_image_types.split(",") if t.strip()}

    if file.content_type not in supported:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported image format: {file.content_type}. "
                   f"Supported: {', '.join(sorted(supported))}",
        )

    content = await file.read()

    max_size = settings.max_upload_size_mb * 1024 * 1024
    if len(content) > max_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds maximum size of {settings.max_upload_size_mb}MB",
        )

    logger.info(f"Frame for session {session_id}: {file.filename}, size={len(content) // 1024}KB")

    nparr = np.frombuffer(content, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR) if nparr.size else None
    if image is None:
        raise InvalidBufferError("Could not decode image")

    analysis = await registry.analyze(session_id, PixelBuffer.from_bgr(image))
    return _to_response(session_id, analysis)


@router.post(
    "/frames/raw",
    response_model=AnalysisResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid pixel buffer"}},
)
async def analyze_raw_frame(
    request: RawFrameRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Analyze an uncompressed RGBA frame as the next frame of a session.
    """
    try:
        data = base64.b64decode(request.data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidBufferError(f"Pixel data is not valid base64: {e}")

    buffer = PixelBuffer.from_rgba(data, request.width, request.height)
    analysis = await registry.analyze(request.session_id, buffer)
    return _to_response(request.session_id, analysis)


# =============================================================================
# Session Endpoints
# =============================================================================

@router.delete(
    "/sessions/{session_id}",
    response_model=SessionResetResponse,
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def reset_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Drop a session and its carried detections.
    """
    frames = registry.remove(session_id)
    return SessionResetResponse(session_id=session_id, frames_processed=frames)
