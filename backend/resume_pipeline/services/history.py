from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models.history import HistoryAction, HistoryStatus, ResumeHistory
from ..utils.logger import get_logger

logger = get_logger(__name__)


class HistoryRecorder:
    """Appends audit events for a file. A failed write is logged, never raised."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record(
        self,
        user_id: int,
        file_id: int,
        action: HistoryAction,
        status: HistoryStatus,
        message: Optional[str] = None,
    ) -> None:
        event = ResumeHistory(
            user_id=user_id,
            file_id=file_id,
            action=HistoryAction(action).value,
            status=HistoryStatus(status).value,
            message=message,
        )
        try:
            with self.session_factory() as db:
                db.add(event)
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Could not record {event.action}/{event.status} for file {file_id}: {e}")

    def list_for_file(self, user_id: int, file_id: int) -> List[ResumeHistory]:
        with self.session_factory() as db:
            return list(
                db.execute(
                    select(ResumeHistory)
                    .where(ResumeHistory.file_id == file_id, ResumeHistory.user_id == user_id)
                    .order_by(ResumeHistory.created_at, ResumeHistory.id)
                ).scalars()
            )
