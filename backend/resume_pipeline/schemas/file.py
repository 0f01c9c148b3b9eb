from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class FileOut(CamelModel):
    id: int
    file_name: str
    file_size: int
    status: str
    uploaded_at: datetime


class FileListItem(FileOut):
    has_resume_data: bool


class FileDetail(FileOut):
    resume_data: Optional[Dict[str, Any]] = None


class HistoryEventOut(CamelModel):
    action: str
    status: str
    message: Optional[str] = None
    created_at: datetime


class UploadResponse(CamelModel):
    success: bool = True
    file: FileOut


class FileListResponse(CamelModel):
    success: bool = True
    files: List[FileListItem]


class FileDetailResponse(CamelModel):
    success: bool = True
    file: FileDetail


class HistoryResponse(CamelModel):
    success: bool = True
    history: List[HistoryEventOut]


class CreditsResponse(CamelModel):
    success: bool = True
    credits: int
