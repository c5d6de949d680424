"""Bundle download endpoint.

Endpoints:
    GET /api/rooms/{room_id}/download/{file_type}: Zip of every file in the
        room for one category (``yaml`` or ``apworld``), built on first
        request and reused until the room's files change
"""
import logging
import os
from typing import BinaryIO, Iterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..errors import BadRequestError
from ..files.schemas import FileCategory
from ..identity import request_identity
from ..state import CollectorState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["archives"])

CHUNK_SIZE = 64 * 1024


def _stream(fh: BinaryIO) -> Iterator[bytes]:
    with fh:
        while True:
            chunk = fh.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


@router.get("/{room_id}/download/{file_type}")
def download_bundle(
    room_id: str,
    file_type: str,
    identity: str = Depends(request_identity),
    state: CollectorState = Depends(get_state),
) -> StreamingResponse:
    """Download all files of one category as a zip archive.

    The bundle is streamed from a handle opened before the response starts,
    so an upload landing mid-download does not break it.

    Raises:
        HTTPException 400: If file_type is not yaml or apworld
        HTTPException 403: If downloads are creator-only and the caller is not the creator
        HTTPException 404: If the room is unknown or nobody has submitted
        HTTPException 410: If the room has expired
    """
    try:
        category = FileCategory(file_type)
    except ValueError:
        raise BadRequestError("Invalid file type") from None

    fh = state.bundle_service.download_bundle(room_id, category, identity)
    filename = state.archives.bundle_name(room_id, category)
    return StreamingResponse(
        _stream(fh),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(os.fstat(fh.fileno()).st_size),
        },
    )
