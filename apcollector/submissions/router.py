"""Submission endpoints.

Endpoints:
    GET /api/rooms/{room_id}/submission: The caller's submission, if any
    POST /api/rooms/{room_id}/upload: Add files to the caller's submission
    DELETE /api/rooms/{room_id}/submission/files: Remove named files
    DELETE /api/rooms/{room_id}/submission: Cancel the submission

The caller is identified by network address; see :mod:`apcollector.identity`.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from ..identity import request_identity
from ..schemas import StatusResponse
from ..state import CollectorState, get_state
from .schemas import (
    FilesResponse,
    GetSubmissionResponse,
    RemoveFilesRequest,
    SubmissionDetail,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["submissions"])


async def _read_capped(upload: UploadFile, limit: int) -> bytes:
    """Read at most *limit* + 1 bytes; the service rejects anything over *limit*."""
    return await upload.read(limit + 1)


@router.get("/{room_id}/submission", response_model=GetSubmissionResponse)
def get_submission(
    room_id: str,
    identity: str = Depends(request_identity),
    state: CollectorState = Depends(get_state),
) -> GetSubmissionResponse:
    """Report whether the caller has submitted and which files they hold."""
    submission = state.submission_service.get_submission(room_id, identity)
    if submission is None:
        return GetSubmissionResponse(has_submission=False)
    return GetSubmissionResponse(
        has_submission=True,
        submission=SubmissionDetail(
            yaml_files=submission.yaml_files,
            apworld_files=submission.apworld_files,
            created_at=submission.created_at,
            updated_at=submission.updated_at,
        ),
    )


@router.post("/{room_id}/upload", response_model=FilesResponse)
async def upload_files(
    room_id: str,
    files: Optional[List[UploadFile]] = File(None),
    yamlFiles: Optional[List[UploadFile]] = File(None),
    apworldFiles: Optional[List[UploadFile]] = File(None),
    identity: str = Depends(request_identity),
    state: CollectorState = Depends(get_state),
) -> FilesResponse:
    """Upload files into the caller's submission.

    Files may arrive under any of the ``files``, ``yamlFiles`` or
    ``apworldFiles`` fields; the field name does not decide the category,
    the file name does.

    Raises:
        HTTPException 400: If no files were sent
        HTTPException 413: If a file exceeds the size limit
    """
    uploads = [*(files or []), *(yamlFiles or []), *(apworldFiles or [])]
    limit = state.file_area.max_file_size_bytes
    payload = [
        (upload.filename or "unnamed", await _read_capped(upload, limit))
        for upload in uploads
    ]

    result = await run_in_threadpool(
        state.submission_service.upload_files, room_id, identity, payload
    )
    return FilesResponse(
        message="Files uploaded successfully" if result.created
        else "Files added to submission successfully",
        yaml_files=result.yaml_files,
        apworld_files=result.apworld_files,
    )


@router.delete("/{room_id}/submission/files", response_model=FilesResponse)
def remove_files(
    room_id: str,
    body: Optional[RemoveFilesRequest] = None,
    identity: str = Depends(request_identity),
    state: CollectorState = Depends(get_state),
) -> FilesResponse:
    """Remove specific stored files from the caller's submission."""
    file_names = body.file_names if body is not None else []
    result = state.submission_service.remove_files(room_id, identity, file_names)
    return FilesResponse(
        message="Files removed successfully",
        yaml_files=result.yaml_files,
        apworld_files=result.apworld_files,
    )


@router.delete("/{room_id}/submission", response_model=StatusResponse)
def cancel_submission(
    room_id: str,
    identity: str = Depends(request_identity),
    state: CollectorState = Depends(get_state),
) -> StatusResponse:
    """Delete the caller's submission and its files."""
    state.submission_service.cancel_submission(room_id, identity)
    return StatusResponse(message="Submission cancelled successfully")
