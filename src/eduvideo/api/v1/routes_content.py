"""Recorded content API routes."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from eduvideo.api.v1.dependencies import get_current_user_id, get_publisher
from eduvideo.api.v1.errors import to_http_exception
from eduvideo.core.exceptions import UploadServiceError
from eduvideo.models.upload import ContentEnvelope, RecordedContentResponse, SuccessResponse
from eduvideo.services.publisher import VideoPublisher

router = APIRouter(prefix="/api/v1/content", tags=["content"])
logger = logging.getLogger(__name__)


@router.get("/{content_id}", response_model=ContentEnvelope)
async def get_content(
    content_id: int,
    publisher: VideoPublisher = Depends(get_publisher),
) -> ContentEnvelope:
    """Fetch a content row; background uploads are polled here."""
    try:
        content = await run_in_threadpool(publisher.get_content, content_id)
        return ContentEnvelope(
            message="Content retrieved",
            data=RecordedContentResponse(**content.to_dict()),
        )

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching content {content_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{content_id}/cloud-status")
async def get_cloud_status(
    content_id: int,
    publisher: VideoPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    """Single provider-side processing status lookup."""
    try:
        status = await run_in_threadpool(publisher.get_cloud_status, content_id)
        return {"success": True, "contentId": content_id, "status": status}

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching cloud status for {content_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{content_id}/retry-cloud", response_model=ContentEnvelope)
async def retry_cloud_upload(
    content_id: int,
    user_id: str = Depends(get_current_user_id),
    publisher: VideoPublisher = Depends(get_publisher),
) -> ContentEnvelope:
    """Move a locally stored fallback video to the cloud provider."""
    try:
        content = await run_in_threadpool(publisher.retry_cloud_upload, content_id, user_id)
        return ContentEnvelope(
            message="Video uploaded successfully",
            data=RecordedContentResponse(**content.to_dict()),
        )

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error retrying cloud upload for {content_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{content_id}", response_model=SuccessResponse)
async def delete_content(
    content_id: int,
    user_id: str = Depends(get_current_user_id),
    publisher: VideoPublisher = Depends(get_publisher),
) -> SuccessResponse:
    """Delete a content row and its stored video."""
    try:
        await run_in_threadpool(publisher.delete_content, content_id, user_id)
        return SuccessResponse(message="Content deleted successfully")

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting content {content_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
