"""
File processing pipeline.

A file moves uploaded -> processing -> completed | failed. Every transition
writes a history event; credits are checked once before the file exists and
debited once, in the same transaction that stores the extracted data and
marks the file completed. Failures after the file exists are recorded
against it and never raised past `process`; a cancelled job is failed
before the cancellation propagates. Files still unfinished when the service
starts belong to a previous run and are failed by `recover_interrupted`.
"""
import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, DefaultDict, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload, sessionmaker

from ..exceptions import AppError, NotFoundError, ProcessingError, ValidationError
from ..models.file import PDF_MIME_TYPE, File, FileStatus
from ..models.history import HistoryAction, HistoryStatus, ResumeHistory
from ..models.resume_data import ResumeData
from ..utils.file_handler import save_upload_bytes
from ..utils.logger import get_logger
from .credits import IN_FLIGHT_STATUSES, CreditLedger
from .extraction.pdf_extractor import PdfTextExtractor
from .history import HistoryRecorder
from .llm.resume_extractor import ResumeDataExtractor
from .queue import ProcessingQueue

logger = get_logger(__name__)

INTERRUPTED_MESSAGE = "Processing was interrupted before completion"


@dataclass(frozen=True)
class FileSnapshot:
    """Detached view of a File row, safe to hand out after the session closes."""
    id: int
    user_id: int
    file_name: str
    file_size: int
    status: str
    uploaded_at: datetime
    has_resume_data: bool = False
    resume_data: Optional[Dict[str, Any]] = None

    @classmethod
    def from_model(cls, file: File, include_data: bool = False) -> "FileSnapshot":
        resume_data = file.resume_data
        return cls(
            id=file.id,
            user_id=file.user_id,
            file_name=file.file_name,
            file_size=file.file_size,
            status=file.status,
            uploaded_at=file.uploaded_at,
            has_resume_data=resume_data is not None,
            resume_data=resume_data.data if (include_data and resume_data is not None) else None,
        )


@dataclass(frozen=True)
class ProcessingJob:
    user_id: int
    file_id: int
    content: bytes = field(repr=False)


@dataclass(frozen=True)
class ProcessingOutcome:
    file_id: int
    status: FileStatus
    error: Optional[str] = None
    skipped: bool = False


class FileProcessor:
    def __init__(
        self,
        session_factory: sessionmaker,
        text_extractor: PdfTextExtractor,
        data_extractor: ResumeDataExtractor,
        ledger: CreditLedger,
        history: HistoryRecorder,
        max_upload_size: int = 10 * 1024 * 1024,
        upload_dir: Optional[str] = None,
        queue: Optional[ProcessingQueue] = None,
    ):
        self.session_factory = session_factory
        self.text_extractor = text_extractor
        self.data_extractor = data_extractor
        self.ledger = ledger
        self.history = history
        self.max_upload_size = max_upload_size
        self.upload_dir = upload_dir
        self.queue = queue
        # Serialises credit reservation and file creation per user
        self._user_locks: DefaultDict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -------------- Upload --------------

    def validate_upload(self, file_name: Optional[str], content_type: Optional[str], content: Optional[bytes]) -> None:
        if content is None or not file_name:
            raise ValidationError("No file provided")
        if content_type != PDF_MIME_TYPE:
            raise ValidationError("Only PDF files are allowed")
        if len(content) > self.max_upload_size:
            raise ValidationError(f"File size exceeds {self.max_upload_size // (1024 * 1024)}MB limit")
        if not content:
            raise ValidationError("Uploaded file is empty")

    async def accept_upload(
        self,
        user_id: int,
        file_name: Optional[str],
        content_type: Optional[str],
        content: Optional[bytes],
    ) -> FileSnapshot:
        self.validate_upload(file_name, content_type, content)

        async with self._user_locks[user_id]:
            with self.session_factory() as db:
                self.ledger.reserve(db, user_id)

                storage_path = None
                if self.upload_dir:
                    storage_path = str(await save_upload_bytes(content, user_id, self.upload_dir))

                file = File(
                    user_id=user_id,
                    file_name=file_name,
                    file_size=len(content),
                    file_type=PDF_MIME_TYPE,
                    storage_path=storage_path,
                    status=FileStatus.UPLOADED.value,
                )
                db.add(file)
                db.commit()
                snapshot = FileSnapshot.from_model(file)

        self.history.record(
            user_id, snapshot.id, HistoryAction.UPLOAD, HistoryStatus.SUCCESS, "File uploaded successfully"
        )
        logger.info(f"Accepted file {snapshot.id} ({snapshot.file_name}, {snapshot.file_size} bytes) for user {user_id}")
        return snapshot

    async def submit(self, job: ProcessingJob) -> Optional[ProcessingOutcome]:
        """Run the job now when no queue is configured, otherwise enqueue it."""
        if self.queue is None:
            return await self.process(job)
        try:
            await self.queue.submit(job)
        except Exception as e:
            message = f"Could not queue file for processing: {e}"
            logger.error(f"{message} (file {job.file_id})")
            self._fail(job, message)
            raise ProcessingError(message) from e
        return None

    def recover_interrupted(self) -> int:
        """
        Fail files left uploaded or processing by a previous run.
        Their bytes only lived in the old process, so nothing can resume them.
        """
        with self.session_factory() as db:
            stranded = db.execute(
                select(File.id, File.user_id).where(File.status.in_(IN_FLIGHT_STATUSES))
            ).all()
            if not stranded:
                return 0
            db.execute(
                update(File)
                .where(File.id.in_([file_id for file_id, _ in stranded]), File.status.in_(IN_FLIGHT_STATUSES))
                .values(status=FileStatus.FAILED.value)
                .execution_options(synchronize_session=False)
            )
            db.commit()

        for file_id, user_id in stranded:
            self.history.record(user_id, file_id, HistoryAction.EXTRACT, HistoryStatus.FAILED, INTERRUPTED_MESSAGE)
        logger.warning(f"Marked {len(stranded)} interrupted file(s) as failed")
        return len(stranded)

    # -------------- Pipeline --------------

    async def process(self, job: ProcessingJob) -> ProcessingOutcome:
        if not self._claim(job.file_id):
            logger.warning(f"File {job.file_id} is not awaiting processing, skipping")
            return ProcessingOutcome(job.file_id, self._current_status(job.file_id), skipped=True)

        self.history.record(
            job.user_id, job.file_id, HistoryAction.PROCESS, HistoryStatus.PENDING, "Extracting text from PDF..."
        )

        try:
            text = await asyncio.to_thread(self.text_extractor.extract_text, job.content)
            logger.info(f"Extracted {len(text)} characters from file {job.file_id}")

            data = await self.data_extractor.extract(text)
            self._complete(job, data)
        except Exception as e:
            message = e.message if isinstance(e, AppError) else (str(e) or e.__class__.__name__)
            if isinstance(e, AppError):
                logger.error(f"Error processing file {job.file_id}: {message}")
            else:
                logger.exception(f"Error processing file {job.file_id}")
            self._fail(job, message)
            return ProcessingOutcome(job.file_id, FileStatus.FAILED, error=message)
        except BaseException:
            # Cancellation or shutdown: leave a terminal state behind, then let it propagate
            logger.warning(f"Processing of file {job.file_id} was interrupted")
            self._fail(job, INTERRUPTED_MESSAGE)
            raise

        self.history.record(
            job.user_id, job.file_id, HistoryAction.EXTRACT, HistoryStatus.SUCCESS, "Successfully extracted resume data"
        )
        logger.info(f"Successfully processed file {job.file_id}")
        return ProcessingOutcome(job.file_id, FileStatus.COMPLETED)

    def _claim(self, file_id: int) -> bool:
        with self.session_factory() as db:
            result = db.execute(
                update(File)
                .where(File.id == file_id, File.status == FileStatus.UPLOADED.value)
                .values(status=FileStatus.PROCESSING.value)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount == 1

    def _complete(self, job: ProcessingJob, data: Dict[str, Any]) -> None:
        with self.session_factory() as db:
            result = db.execute(
                update(File)
                .where(File.id == job.file_id, File.status == FileStatus.PROCESSING.value)
                .values(status=FileStatus.COMPLETED.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise RuntimeError(f"File {job.file_id} left the processing state before completion")

            db.add(ResumeData(user_id=job.user_id, file_id=job.file_id, data=data))
            self.ledger.debit(db, job.user_id)
            db.commit()

    def _fail(self, job: ProcessingJob, message: str) -> None:
        """Move an unfinished file to failed and record why."""
        try:
            with self.session_factory() as db:
                result = db.execute(
                    update(File)
                    .where(File.id == job.file_id, File.status.in_(IN_FLIGHT_STATUSES))
                    .values(status=FileStatus.FAILED.value)
                    .execution_options(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError:
            logger.exception(f"Could not mark file {job.file_id} as failed")
            return
        if result.rowcount == 1:
            self.history.record(job.user_id, job.file_id, HistoryAction.EXTRACT, HistoryStatus.FAILED, message)

    def _current_status(self, file_id: int) -> FileStatus:
        with self.session_factory() as db:
            status = db.execute(select(File.status).where(File.id == file_id)).scalar_one_or_none()
        if status is None:
            raise NotFoundError("File not found")
        return FileStatus(status)

    # -------------- Reads --------------

    def list_files(self, user_id: int) -> List[FileSnapshot]:
        with self.session_factory() as db:
            files = db.execute(
                select(File)
                .options(selectinload(File.resume_data))
                .where(File.user_id == user_id)
                .order_by(File.uploaded_at.desc(), File.id.desc())
            ).scalars()
            return [FileSnapshot.from_model(f) for f in files]

    def get_file(self, user_id: int, file_id: int) -> FileSnapshot:
        with self.session_factory() as db:
            file = db.execute(
                select(File)
                .options(selectinload(File.resume_data))
                .where(File.id == file_id, File.user_id == user_id)
            ).scalar_one_or_none()
            if file is None:
                raise NotFoundError("File not found")
            return FileSnapshot.from_model(file, include_data=True)

    def get_history(self, user_id: int, file_id: int) -> List[ResumeHistory]:
        self.get_file(user_id, file_id)
        return self.history.list_for_file(user_id, file_id)

    def get_credits(self, user_id: int) -> int:
        return self.ledger.check_balance(user_id)
