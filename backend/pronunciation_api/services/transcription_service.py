import logging
import os

import torch
from transformers import pipeline

from ..core.config import settings
from ..core.exceptions import TranscriptionError
from ..models_api.schemas import TranscriptionResult, WordTimestamp

logger = logging.getLogger(__name__)

# Audio formats accepted by the analysis route
SUPPORTED_FORMATS = ["flac", "m4a", "mp3", "mp4", "mpeg", "mpga", "oga", "ogg", "wav", "webm"]


class WhisperTranscriber:
    """Korean speech-to-text with a Whisper checkpoint through the transformers ASR pipeline."""

    def __init__(self, model_name: str = settings.WHISPER_MODEL_NAME, language: str = settings.TRANSCRIPTION_LANGUAGE):
        self.model_name = model_name
        self.language = language
        self.asr_pipeline = None

    @property
    def is_loaded(self) -> bool:
        return self.asr_pipeline is not None

    def load(self) -> None:
        """Loads the model once at startup. Failure leaves the transcriber unavailable."""
        try:
            # `device_map="auto"` handles GPU/CPU automatically; fp16 only on CUDA
            self.asr_pipeline = pipeline(
                "automatic-speech-recognition",
                model=self.model_name,
                torch_dtype=torch.float16 if torch.cuda.is_available() else torch.float32,
                device_map="auto",
            )
            logger.info(f"ASR Pipeline loaded with {self.model_name}")
        except Exception as e:
            logger.error(f"Failed to load ASR pipeline ({self.model_name}): {e}. Transcription will be unavailable.")
            self.asr_pipeline = None

    def transcribe(self, audio_path: str) -> TranscriptionResult:
        """
        Transcribes an audio file.
        Returns the full text and word chunks with (start, end) timestamps.
        """
        if not self.asr_pipeline:
            raise RuntimeError("ASR pipeline is not available.")
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        logger.info(f"Transcribing {audio_path} (language: {self.language})")
        try:
            result = self.asr_pipeline(
                audio_path,
                return_timestamps="word",
                generate_kwargs={"language": self.language, "task": "transcribe"},
            )
        except Exception as e:
            logger.error(f"Error during transcription of {audio_path}: {e}")
            raise TranscriptionError(f"Speech-to-text conversion failed: {e}") from e

        if "text" not in result:
            logger.warning(f"ASR output for {audio_path} missing 'text'. Result: {result}")
            raise TranscriptionError("ASR output format incorrect. Needs 'text'.")

        words = [
            WordTimestamp(text=chunk["text"].strip(), timestamp=tuple(chunk.get("timestamp") or (None, None)))
            for chunk in result.get("chunks", [])
            if chunk.get("text", "").strip()
        ]
        transcription = result["text"].strip()
        logger.info(f"Transcription successful: {transcription}")
        return TranscriptionResult(text=transcription, words=words)
