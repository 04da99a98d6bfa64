from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional, Union
import shutil
import tempfile
import time
import os
import logging

from .core.config import settings
from .core.context import AnalysisContext, build_analysis_context
from .core.exceptions import ApiError, PronunciationAnalysisError, TranscriptionError
from .core.logging_config import configure_logging
from .models_api import schemas # Pydantic models
from .services.analysis_service import PronunciationAnalyzer
from .services.transcription_service import SUPPORTED_FORMATS, WhisperTranscriber

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(f"{request.method} {request.url.path} - {response.status_code} ({process_time:.3f}s)")
    return response


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    body = schemas.ErrorResponse(
        message=exc.message,
        details=None if settings.is_production else exc.details,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    body = schemas.ErrorResponse(
        message="Something went wrong",
        details=None if settings.is_production else str(exc),
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


@app.on_event("startup")
async def startup_event():
    configure_logging(settings.LOGS_DIR, settings.log_level)
    logger.info("Application starting up...")
    # Without the rule corpus and its index the analysis route must not serve: let errors abort startup
    app.state.analysis_context = build_analysis_context(settings)

    transcriber = WhisperTranscriber(settings.WHISPER_MODEL_NAME, settings.TRANSCRIPTION_LANGUAGE)
    transcriber.load()
    if not transcriber.is_loaded:
        logger.critical("ASR Pipeline is NOT loaded. /api/analyze-pronunciation will answer 503.")
    app.state.transcriber = transcriber
    logger.info("Startup complete.")


def get_analysis_context(request: Request) -> Optional[AnalysisContext]:
    return getattr(request.app.state, "analysis_context", None)


def get_transcriber(request: Request) -> Optional[WhisperTranscriber]:
    return getattr(request.app.state, "transcriber", None)


def _cleanup_temp_file(path: str):
    try:
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Cleaned up temporary file: {path}")
    except Exception as e:
        logger.error(f"Error cleaning up temporary file {path}: {e}")


def _validate_audio_upload(audio: Optional[UploadFile]) -> str:
    """Returns the lower-cased extension of a supported upload, else raises a 400."""
    if audio is None or not audio.filename:
        raise ApiError(400, "No audio file provided")

    file_extension = os.path.splitext(audio.filename)[1].lstrip(".").lower()
    if file_extension not in SUPPORTED_FORMATS:
        logger.warning(f"Unsupported file format: {file_extension or '(none)'}")
        raise ApiError(400, f"Unsupported file format. Supported formats: {', '.join(SUPPORTED_FORMATS)}")
    return file_extension


@app.get("/api/health", response_model=schemas.HealthResponse)
async def health():
    return schemas.HealthResponse(message="Korean Pronunciation Analysis API is running")


@app.post(
    "/api/analyze-pronunciation",
    response_model=Union[schemas.CorrectPronunciationResponse, schemas.IncorrectPronunciationResponse],
)
async def analyze_pronunciation_endpoint(
    audio: Optional[UploadFile] = File(None),
    expected_text: Optional[str] = Form(None),
    analysis_context: Optional[AnalysisContext] = Depends(get_analysis_context),
    transcriber: Optional[WhisperTranscriber] = Depends(get_transcriber),
):
    logger.info("Received pronunciation analysis request")
    file_extension = _validate_audio_upload(audio)
    logger.info(f"Received file: {audio.filename}, type: {audio.content_type}")

    if analysis_context is None:
        raise ApiError(503, "Service temporarily unavailable", "Pronunciation analysis is not initialized")
    if transcriber is None or not transcriber.is_loaded:
        raise ApiError(503, "Service temporarily unavailable", "ASR pipeline is not available")

    # Save uploaded file temporarily
    try:
        with tempfile.NamedTemporaryFile(delete=False, suffix=f".{file_extension}") as tmp_audio:
            shutil.copyfileobj(audio.file, tmp_audio)
            tmp_audio_path = tmp_audio.name
        logger.info(f"Audio file saved temporarily to {tmp_audio_path}")
    except Exception as e:
        logger.error(f"Failed to save uploaded audio file: {e}", exc_info=True)
        raise ApiError(500, "Failed to process uploaded file", str(e))
    finally:
        audio.file.close()

    if os.path.getsize(tmp_audio_path) == 0:
        _cleanup_temp_file(tmp_audio_path)
        raise ApiError(400, "Audio file is empty")

    try:
        # 1. Transcribe audio to text
        transcription = await run_in_threadpool(transcriber.transcribe, tmp_audio_path)
        if not transcription.text:
            raise ApiError(400, "No speech could be recognized in the audio file")

        # 2. Decide whether the transcription reflects correct pronunciation
        logger.info(f"Analyzing pronunciation accuracy for transcribed text: {transcription.text}")
        analyzer = PronunciationAnalyzer(analysis_context)
        analysis_result = await run_in_threadpool(analyzer.analyze, transcription.text, expected_text)

    except ApiError:
        raise
    except RuntimeError as e: # Model not loaded
        logger.error(f"Runtime error during analysis: {e}", exc_info=True)
        raise ApiError(503, "Service temporarily unavailable", str(e))
    except (TranscriptionError, PronunciationAnalysisError) as e:
        logger.error(f"Upstream failure during analysis: {e}", exc_info=True)
        raise ApiError(502, "Pronunciation analysis failed", str(e))
    except Exception as e:
        logger.error(f"Unexpected error during pronunciation analysis: {e}", exc_info=True)
        raise ApiError(500, "Something went wrong", str(e))
    finally:
        _cleanup_temp_file(tmp_audio_path)

    if analysis_result.is_correct:
        return schemas.CorrectPronunciationResponse()
    return schemas.IncorrectPronunciationResponse(
        correct_pronunciation=analysis_result.correct_pronunciation,
        feedback=analysis_result.feedback,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("pronunciation_api.main:app", host=settings.API_HOST, port=settings.API_PORT)
