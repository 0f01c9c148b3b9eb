import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime
from ..database import Base


class HistoryAction(str, enum.Enum):
    UPLOAD = "upload"
    PROCESS = "process"
    EXTRACT = "extract"


class HistoryStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ResumeHistory(Base):
    """Append-only audit trail. `id` breaks ties between equal timestamps."""
    __tablename__ = "resume_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    file_id = Column(Integer, ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)

    action = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
