from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from langchain_core.runnables import Runnable

from .config import Settings, get_settings
from .database import build_engine, build_session_factory, init_db
from .exceptions import AppError
from .api import auth, files, history
from .services.credits import CreditLedger
from .services.extraction.pdf_extractor import PdfTextExtractor
from .services.history import HistoryRecorder
from .services.llm.resume_extractor import ResumeDataExtractor
from .services.processor import FileProcessor
from .services.queue import ProcessingQueue
from .utils.logger import get_logger


def build_processor(
    settings: Settings,
    session_factory,
    llm: Optional[Runnable] = None,
    text_extractor: Optional[PdfTextExtractor] = None,
) -> FileProcessor:
    """Wire the pipeline components once per process."""
    return FileProcessor(
        session_factory=session_factory,
        text_extractor=text_extractor or PdfTextExtractor(
            min_text_length=settings.MIN_TEXT_LENGTH,
            ocr_dpi=settings.OCR_DPI,
            ocr_lang=settings.OCR_LANG,
        ),
        data_extractor=ResumeDataExtractor.from_settings(settings, llm=llm),
        ledger=CreditLedger(session_factory, cost=settings.CREDIT_COST_PER_FILE),
        history=HistoryRecorder(session_factory),
        max_upload_size=settings.MAX_UPLOAD_SIZE,
        upload_dir=settings.UPLOAD_DIR,
        queue=None if settings.PROCESS_INLINE else ProcessingQueue(settings.PROCESSING_WORKERS),
    )


def create_app(
    settings: Optional[Settings] = None,
    llm: Optional[Runnable] = None,
    text_extractor: Optional[PdfTextExtractor] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logger = get_logger("resume_pipeline", settings.LOG_LEVEL)

    engine = build_engine(settings.DATABASE_URL)
    init_db(engine)
    session_factory = build_session_factory(engine)
    processor = build_processor(settings, session_factory, llm=llm, text_extractor=text_extractor)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        processor.recover_interrupted()
        if processor.queue is not None:
            await processor.queue.start(processor.process)
        yield
        if processor.queue is not None:
            await processor.queue.stop()
        engine.dispose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Resume Processing Pipeline",
        description="Upload PDF resumes and extract structured data with an LLM.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.processor = processor

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.message})

    # --- Mount Routers ---
    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(files.router, prefix="/files", tags=["Files"])
    app.include_router(history.router, prefix="/files", tags=["Files"])

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "ok", "message": "API is running"}

    return app


def run() -> None:
    import uvicorn

    uvicorn.run("resume_pipeline.main:create_app", factory=True, host="0.0.0.0", port=8000)
