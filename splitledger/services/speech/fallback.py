"""
Transcription fallback.

When voice input fails for any reason, the chat still gets a question: a
random one from a short list of common personal-finance questions.
"""

import random
from typing import Optional

import structlog

from splitledger.services.speech.interface import SpeechToTextInterface


logger = structlog.get_logger(__name__)

FALLBACK_QUESTIONS = [
    "How can I improve my credit score?",
    "What's the best way to invest for retirement?",
    "Should I pay off debt or invest first?",
    "How do I create a budget?",
    "What are the tax benefits of a 401k?",
]


def fallback_question(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(FALLBACK_QUESTIONS)


async def transcribe_or_fallback(
    transcriber: SpeechToTextInterface,
    audio: bytes,
    rng: Optional[random.Random] = None,
) -> tuple[str, Optional[str]]:
    """
    Transcribe audio, substituting a fallback question on failure.

    Returns (text, error_message). error_message is None on success.
    """
    try:
        return await transcriber.transcribe(audio), None
    except Exception as e:
        # vendor SDKs raise their own exception types
        question = fallback_question(rng)
        logger.warning("transcription_failed", error=str(e), fallback=question)
        return question, str(e)
