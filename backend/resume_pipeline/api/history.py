from fastapi import APIRouter, Depends

from ..schemas.file import HistoryEventOut, HistoryResponse
from ..services.processor import FileProcessor
from .deps import get_current_user_id, get_processor

router = APIRouter()

@router.get("/{file_id}/history", response_model=HistoryResponse)
async def get_file_history_endpoint(
    file_id: int,
    user_id: int = Depends(get_current_user_id),
    processor: FileProcessor = Depends(get_processor),
):
    """
    Processing history of one file, oldest event first.
    """
    events = processor.get_history(user_id, file_id)
    return HistoryResponse(history=[HistoryEventOut.model_validate(e) for e in events])
