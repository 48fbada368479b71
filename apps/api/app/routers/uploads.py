"""File uploads for file-type form fields."""

from typing import Annotated

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas.forms import UploadedFileRead
from app.services import upload_service
from app.services.errors import UploadRejectedError

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("", response_model=UploadedFileRead, status_code=201)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC}/minute")
def upload_file(request: Request, file: Annotated[UploadFile, File()]):
    """
    Store one file and return its descriptor.

    The descriptor is what the respondent client records as the field answer.
    """
    try:
        stored = upload_service.store_upload(file)
    except UploadRejectedError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return UploadedFileRead(**stored)


@router.get("/{filename}")
def download_file(filename: str):
    path = upload_service.get_upload_path(filename)
    if not path:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path)
