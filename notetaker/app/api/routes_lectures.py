import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from notetaker.app.schemas.lectures import (
    LectureAccepted,
    LectureDetail,
    LectureMerge,
    LectureStatus,
    LectureSummary,
    LectureUpdate,
)
from notetaker.domain.errors import EmptyUploadError, PipelineError, UploadTooLargeError
from notetaker.domain.models import JobStatus
from notetaker.domain.services.job_service import LectureService, LectureStateError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "audio/webm",
        "audio/wav",
        "audio/x-wav",
        "audio/wave",
        "audio/mp3",
        "audio/mpeg",
        "audio/mp4",
        "audio/x-m4a",
        "audio/ogg",
    }
)

router = APIRouter(prefix="/api/lectures", tags=["lectures"])


def get_service(request: Request) -> LectureService:
    return request.app.state.lecture_service


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Authentication happens upstream; this only reads the resolved user id.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    return x_user_id.strip()


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Lecture not found")


@router.post("", response_model=None)
async def upload_lecture(
    audio: UploadFile = File(...),
    title: Optional[str] = Form(default=None),
    owner_id: str = Depends(get_owner_id),
    service: LectureService = Depends(get_service),
):
    """
    Upload a recording. Short lectures are processed before responding;
    long ones return 202 immediately and are processed in the background.
    """
    if not audio.filename:
        raise HTTPException(status_code=400, detail="No audio file provided")
    content_type = (audio.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=415, detail="Only audio files are allowed")

    settings = service.settings
    job_id = str(uuid.uuid4())
    try:
        audio_path = await service.audio_store.save_upload(job_id, audio, settings.max_upload_bytes)
    except UploadTooLargeError as e:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_upload_mb} MB.",
        ) from e
    except EmptyUploadError as e:
        raise HTTPException(status_code=400, detail="Uploaded file is empty") from e
    except OSError as e:
        if e.errno == 28:  # ENOSPC
            raise HTTPException(status_code=507, detail="Server ran out of disk space.") from e
        raise HTTPException(status_code=500, detail=f"Failed to save file: {e!s}") from e

    try:
        result = await service.ingest(job_id, owner_id, title, audio_path)
    except Exception as e:
        # ingest has already removed the stored audio
        raise HTTPException(status_code=500, detail=f"Failed to process audio: {e!s}") from e
    job = result.job

    if result.background:
        accepted = LectureAccepted(
            id=job.id,
            title=job.title,
            status=job.status,
            message=(
                f"Your {job.duration_minutes}-minute lecture is being processed in the background. "
                "You can close this page and come back later to view your notes."
            ),
            estimated_time=f"{result.estimated_minutes} minutes",
        )
        return JSONResponse(status_code=202, content=accepted.model_dump(mode="json"))

    if job.status == JobStatus.FAILED:
        return JSONResponse(
            status_code=500,
            content={"id": job.id, "detail": job.error_message or "Failed to process audio"},
        )
    return LectureDetail.from_job(job)


@router.post("/merge", response_model=LectureDetail)
async def merge_lectures(
    body: LectureMerge,
    owner_id: str = Depends(get_owner_id),
    service: LectureService = Depends(get_service),
):
    """Combine the completed parts of a long recording into one lecture."""
    try:
        job = await service.merge_lectures(owner_id, body.title, body.lecture_ids)
    except LectureStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PipelineError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    if not job:
        raise _not_found()
    return LectureDetail.from_job(job)


@router.get("", response_model=List[LectureSummary])
async def list_lectures(
    owner_id: str = Depends(get_owner_id),
    service: LectureService = Depends(get_service),
):
    jobs = await service.list_lectures(owner_id)
    return [LectureSummary.from_job(j) for j in jobs]


@router.get("/{lecture_id}", response_model=LectureDetail)
async def get_lecture(
    lecture_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LectureService = Depends(get_service),
):
    job = await service.get_lecture(lecture_id, owner_id)
    if not job:
        raise _not_found()
    return LectureDetail.from_job(job)


@router.get("/{lecture_id}/status", response_model=LectureStatus)
async def get_lecture_status(
    lecture_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LectureService = Depends(get_service),
):
    view = await service.get_status(lecture_id, owner_id)
    if not view:
        raise _not_found()
    return LectureStatus.from_view(view)


@router.put("/{lecture_id}", response_model=LectureDetail)
async def update_lecture(
    lecture_id: str,
    body: LectureUpdate,
    owner_id: str = Depends(get_owner_id),
    service: LectureService = Depends(get_service),
):
    try:
        job = await service.update_lecture(lecture_id, owner_id, title=body.title, notes=body.notes)
    except LectureStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if not job:
        raise _not_found()
    return LectureDetail.from_job(job)


@router.delete("/{lecture_id}")
async def delete_lecture(
    lecture_id: str,
    owner_id: str = Depends(get_owner_id),
    service: LectureService = Depends(get_service),
):
    if not await service.delete_lecture(lecture_id, owner_id):
        raise _not_found()
    return {"message": "Lecture deleted successfully"}
