"""Upload API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, File, Form, HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from eduvideo.api.v1.dependencies import (
    get_chunked_upload_service,
    get_current_user_id,
    get_publisher,
)
from eduvideo.api.v1.errors import to_http_exception
from eduvideo.core.exceptions import UploadServiceError
from eduvideo.models.upload import (
    ChunkUploadResponse,
    CompleteUploadRequest,
    ContentEnvelope,
    InitializeUploadRequest,
    InitializeUploadResponse,
    RecordedContentResponse,
    SuccessResponse,
    UploadProgressResponse,
)
from eduvideo.services.chunked_upload import ChunkedUploadService
from eduvideo.services.publisher import FinalizeResult, VideoPublisher

router = APIRouter(prefix="/api/v1/upload", tags=["upload"])
logger = logging.getLogger(__name__)


def _envelope(result: FinalizeResult) -> ContentEnvelope:
    return ContentEnvelope(
        message=result.message,
        data=RecordedContentResponse(**result.content.to_dict()),
        warning=result.warning,
    )


@router.post("/chunked/initialize", response_model=InitializeUploadResponse, status_code=201)
async def initialize_chunked_upload(
    request: InitializeUploadRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    service: ChunkedUploadService = Depends(get_chunked_upload_service),
) -> InitializeUploadResponse:
    """Open a chunked upload session."""
    try:
        session = await run_in_threadpool(
            service.initialize,
            user_id,
            request.file_name,
            request.file_size,
            request.total_chunks,
            request.metadata,
        )
        return InitializeUploadResponse(upload_id=session.upload_id)

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error initializing chunked upload: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to initialize upload")


@router.post("/chunked/chunk", response_model=ChunkUploadResponse)
async def upload_chunk(
    upload_id: str = Form(..., alias="uploadId"),
    chunk_index: int = Form(..., alias="chunkIndex"),
    chunk: UploadFile = File(...),
    checksum: Optional[str] = Form(None),
    user_id: str = Depends(get_current_user_id),
    service: ChunkedUploadService = Depends(get_chunked_upload_service),
) -> ChunkUploadResponse:
    """Receive one chunk of a session."""
    try:
        data = await chunk.read()
        session = await run_in_threadpool(
            service.upload_chunk, upload_id, user_id, chunk_index, data, checksum
        )
        return ChunkUploadResponse(
            progress=session.progress,
            uploaded_chunks=session.uploaded_count,
            total_chunks=session.total_chunks,
        )

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error uploading chunk: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload chunk")


@router.post("/chunked/complete", response_model=ContentEnvelope)
async def complete_chunked_upload(
    background_tasks: BackgroundTasks,
    request: CompleteUploadRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    service: ChunkedUploadService = Depends(get_chunked_upload_service),
) -> ContentEnvelope:
    """Merge the chunks and publish the video.

    A cloud failure still answers 200; the response then carries ``warning``
    and the content row points at the local copy.
    """
    try:
        if not request.upload_id or not request.upload_id.strip():
            raise HTTPException(status_code=400, detail="uploadId is required")

        result = await run_in_threadpool(
            service.complete, request.upload_id, user_id, background_tasks.add_task
        )
        return _envelope(result)

    except HTTPException:
        raise
    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error completing chunked upload: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to complete upload")


@router.get("/chunked/progress/{upload_id}", response_model=UploadProgressResponse)
async def get_upload_progress(
    upload_id: str,
    service: ChunkedUploadService = Depends(get_chunked_upload_service),
) -> UploadProgressResponse:
    """Report how many chunks of a session arrived."""
    try:
        session = await run_in_threadpool(service.get_progress, upload_id)
        return UploadProgressResponse(
            upload_id=session.upload_id,
            progress=session.progress,
            uploaded_chunks=session.uploaded_count,
            total_chunks=session.total_chunks,
            chunk_indices=session.sorted_chunks(),
            file_name=session.file_name,
            file_size=session.file_size,
            status=session.status.value,
        )

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting upload progress: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get upload progress")


@router.delete("/chunked/cancel/{upload_id}", response_model=SuccessResponse)
async def cancel_upload(
    upload_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ChunkedUploadService = Depends(get_chunked_upload_service),
) -> SuccessResponse:
    """Cancel a session and drop its chunks."""
    try:
        await run_in_threadpool(service.cancel, upload_id, user_id)
        return SuccessResponse(message="Upload cancelled successfully")

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error cancelling upload: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to cancel upload")


@router.post("/simple", response_model=ContentEnvelope)
async def upload_video(
    background_tasks: BackgroundTasks,
    video: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    course_id: Optional[str] = Form(None, alias="courseId"),
    batch_id: Optional[str] = Form(None, alias="batchId"),
    user_id: str = Depends(get_current_user_id),
    publisher: VideoPublisher = Depends(get_publisher),
) -> ContentEnvelope:
    """Single-request upload for small files."""
    try:
        video.file.seek(0, 2)  # Seek to end
        size_bytes = video.file.tell()
        video.file.seek(0)

        result = await run_in_threadpool(
            publisher.publish_direct_upload,
            user_id,
            video.filename or "",
            video.content_type,
            video.file,
            size_bytes,
            {
                "title": title,
                "description": description,
                "course_id": course_id,
                "batch_id": batch_id,
            },
            background_tasks.add_task,
        )
        return _envelope(result)

    except UploadServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error uploading video: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload video")
