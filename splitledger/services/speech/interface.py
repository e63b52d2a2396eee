"""
Speech Service Interfaces

DESIGN DECISION: Speech vendors are opaque collaborators. The app only needs
"audio in, text out" and "text in, sound out". Vendor SDK calls live in
subclasses; this module owns the parts that are ours: the bounded polling
loop and the error taxonomy.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from splitledger.config import SpeechSettings, get_settings


logger = structlog.get_logger(__name__)


class TranscriptionError(Exception):
    """The transcription service failed or reported an error."""
    pass


class TranscriptionTimeoutError(TranscriptionError):
    """The transcription job did not complete within the polling budget."""
    pass


class SpeechInputUnavailableError(TranscriptionError):
    """No audio could be captured (e.g. microphone permission denied)."""
    pass


class SpeechToTextInterface(ABC):
    """Turns recorded audio into text."""

    @abstractmethod
    async def transcribe(self, audio: bytes) -> str:
        """
        Transcribe an audio clip.

        Raises:
            TranscriptionError: If transcription fails or times out
        """
        pass


class TextToSpeechInterface(ABC):
    """
    Speaks text aloud.

    speak() is fire-and-forget and cancels whatever was being spoken before.
    """

    @abstractmethod
    def speak(self, text: str) -> None:
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop the current utterance, if any."""
        pass


class PollingTranscriber(SpeechToTextInterface):
    """
    Base for job-based transcription services.

    Upload/submit once, then poll the job status every `poll_interval_seconds`
    for at most `max_poll_attempts` attempts.

    Subclasses implement:
        _submit(audio) -> job_id
        _poll(job_id) -> (status, text_or_error)
    where status is "completed", "error", or anything else for "still running".
    """

    COMPLETED = "completed"
    ERROR = "error"

    def __init__(self, settings: Optional[SpeechSettings] = None):
        self._settings = settings or get_settings().speech

    @abstractmethod
    async def _submit(self, audio: bytes) -> str:
        pass

    @abstractmethod
    async def _poll(self, job_id: str) -> tuple[str, Optional[str]]:
        pass

    async def transcribe(self, audio: bytes) -> str:
        if not audio:
            raise SpeechInputUnavailableError("No audio was recorded")

        job_id = await self._submit(audio)
        logger.debug("transcription_submitted", job_id=job_id)

        for attempt in range(1, self._settings.max_poll_attempts + 1):
            status, payload = await self._poll(job_id)
            if status == self.COMPLETED:
                logger.debug("transcription_completed", job_id=job_id, attempts=attempt)
                return payload or ""
            if status == self.ERROR:
                raise TranscriptionError(f"Transcription failed: {payload or 'unknown error'}")
            await asyncio.sleep(self._settings.poll_interval_seconds)

        raise TranscriptionTimeoutError("Transcription timed out")
