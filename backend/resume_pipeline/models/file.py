import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from ..database import Base

PDF_MIME_TYPE = "application/pdf"


class FileStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    file_type = Column(String(50), nullable=False, default=PDF_MIME_TYPE)
    storage_path = Column(String(512), nullable=True)  # None when bytes are kept inline

    # Mutated only by the processing pipeline
    status = Column(String(20), nullable=False, default=FileStatus.UPLOADED.value, index=True)

    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    resume_data = relationship("ResumeData", uselist=False, back_populates="file")
