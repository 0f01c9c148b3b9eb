from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from ..exceptions import ProcessingError
from ..models.file import FileStatus
from ..schemas.file import (
    CreditsResponse,
    FileDetail,
    FileDetailResponse,
    FileListItem,
    FileListResponse,
    FileOut,
    UploadResponse,
)
from ..services.processor import FileProcessor, ProcessingJob
from .deps import get_current_user_id, get_processor

router = APIRouter()

@router.post("/upload", response_model=UploadResponse)
async def upload_file_endpoint(
    file: Optional[UploadFile] = File(None),
    user_id: int = Depends(get_current_user_id),
    processor: FileProcessor = Depends(get_processor),
):
    """
    Upload a PDF resume. The file is accepted once it passes validation and
    the credit check; extraction then runs inline or on the background queue.
    """
    content = await file.read() if file is not None else None
    uploaded = await processor.accept_upload(
        user_id,
        file.filename if file is not None else None,
        file.content_type if file is not None else None,
        content,
    )

    outcome = await processor.submit(ProcessingJob(user_id=user_id, file_id=uploaded.id, content=content))
    if outcome is not None:
        # Inline processing: the caller is still waiting, so report the failure
        if outcome.status == FileStatus.FAILED:
            raise ProcessingError(outcome.error)
        uploaded = processor.get_file(user_id, uploaded.id)

    return UploadResponse(file=FileOut.model_validate(uploaded))


@router.get("", response_model=FileListResponse)
async def list_files_endpoint(
    user_id: int = Depends(get_current_user_id),
    processor: FileProcessor = Depends(get_processor),
):
    """
    All files of the current user, newest first.
    """
    files = processor.list_files(user_id)
    return FileListResponse(files=[FileListItem.model_validate(f) for f in files])


@router.get("/credits/balance", response_model=CreditsResponse)
async def credit_balance_endpoint(
    user_id: int = Depends(get_current_user_id),
    processor: FileProcessor = Depends(get_processor),
):
    return CreditsResponse(credits=processor.get_credits(user_id))


@router.get("/{file_id}", response_model=FileDetailResponse)
async def get_file_endpoint(
    file_id: int,
    user_id: int = Depends(get_current_user_id),
    processor: FileProcessor = Depends(get_processor),
):
    """
    One file with its extracted resume data (null until processing completes).
    """
    file = processor.get_file(user_id, file_id)
    return FileDetailResponse(file=FileDetail.model_validate(file))
