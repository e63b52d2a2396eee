"""Speech-to-text and text-to-speech collaborators."""

from splitledger.services.speech.interface import (
    PollingTranscriber,
    SpeechInputUnavailableError,
    SpeechToTextInterface,
    TextToSpeechInterface,
    TranscriptionError,
    TranscriptionTimeoutError,
)
from splitledger.services.speech.fallback import (
    FALLBACK_QUESTIONS,
    fallback_question,
    transcribe_or_fallback,
)

__all__ = [
    "PollingTranscriber",
    "SpeechInputUnavailableError",
    "SpeechToTextInterface",
    "TextToSpeechInterface",
    "TranscriptionError",
    "TranscriptionTimeoutError",
    "FALLBACK_QUESTIONS",
    "fallback_question",
    "transcribe_or_fallback",
]
