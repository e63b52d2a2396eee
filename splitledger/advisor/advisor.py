"""
Financial Advisor Chat

FinancialAdvisor answers one prompt from the rule table.
AdvisorChat keeps a conversation: history, optional voice input through a
transcriber, optional spoken replies.

Failures never reach the user as exceptions. A failed transcription becomes
a fallback question; a failed advice lookup becomes an apology message.
"""

import random
from typing import Optional

import structlog

from splitledger.advisor.rules import RULES, AdviceRule, match_rule, normalize
from splitledger.audit.logger import AuditLogger
from splitledger.models.audit import AuditEventBuilder
from splitledger.models.transaction import ChatMessage
from splitledger.services.speech.fallback import transcribe_or_fallback
from splitledger.services.speech.interface import (
    SpeechToTextInterface,
    TextToSpeechInterface,
)


logger = structlog.get_logger(__name__)

WELCOME_MESSAGE = (
    "Hi there! I'm your financial advisor. I can provide general financial "
    "advice and tips. How can I assist you today?"
)
SERVICE_ERROR_MESSAGE = (
    "I'm sorry, I'm having trouble connecting to the financial advice service "
    "right now. Please try again later."
)
MICROPHONE_ERROR_MESSAGE = (
    "I couldn't access your microphone. Please make sure your browser has "
    "permission to use it and try again."
)


class FinancialAdvisor:
    """Canned financial advice, one rule table lookup per prompt."""

    def __init__(
        self,
        rules: Optional[list[AdviceRule]] = None,
        rng: Optional[random.Random] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._rules = rules or RULES
        self._rng = rng or random.Random()
        self._audit = audit_logger

    def respond(self, prompt: str) -> tuple[AdviceRule, str]:
        """Pure lookup: the matching rule and one of its responses."""
        rule = match_rule(prompt, self._rules)
        return rule, self._rng.choice(rule.responses)

    async def advise(self, prompt: str, from_voice: bool = False) -> str:
        rule, response = self.respond(prompt)
        if self._audit:
            await self._audit.log(AuditEventBuilder.advice_requested(
                rule_name=rule.name,
                prompt_length=len(normalize(prompt)),
                from_voice=from_voice,
            ))
        return response


class AdvisorChat:
    """
    One advisor conversation.

    History starts with the welcome message. When replies are spoken, each
    new reply cancels the previous utterance.
    """

    def __init__(
        self,
        advisor: FinancialAdvisor,
        transcriber: Optional[SpeechToTextInterface] = None,
        speaker: Optional[TextToSpeechInterface] = None,
        speak_replies: bool = True,
        audit_logger: Optional[AuditLogger] = None,
        rng: Optional[random.Random] = None,
    ):
        self._advisor = advisor
        self._transcriber = transcriber
        self._speaker = speaker
        self._audit = audit_logger
        self._rng = rng
        self.speak_replies = speak_replies
        self.history: list[ChatMessage] = [
            ChatMessage(role="assistant", content=WELCOME_MESSAGE)
        ]

    @property
    def voice_input_available(self) -> bool:
        return self._transcriber is not None

    def _reply(self, content: str) -> ChatMessage:
        message = ChatMessage(role="assistant", content=content)
        self.history.append(message)
        if self.speak_replies and self._speaker is not None:
            self._speaker.speak(content)
        return message

    async def send(self, text: str, from_voice: bool = False) -> ChatMessage:
        """Add the user's message and the advisor's reply to the history."""
        self.history.append(ChatMessage(role="user", content=text, from_voice=from_voice))
        try:
            response = await self._advisor.advise(text, from_voice=from_voice)
        except Exception as e:
            logger.error("advice_failed", error=str(e))
            return self._reply(SERVICE_ERROR_MESSAGE)
        return self._reply(response)

    async def send_voice(self, audio: bytes) -> ChatMessage:
        """
        Transcribe a recording and send it as a question.

        With no recording (microphone unavailable) the chat explains the
        problem instead of asking a fallback question.
        """
        if self._transcriber is None or not audio:
            return self._reply(MICROPHONE_ERROR_MESSAGE)

        text, error = await transcribe_or_fallback(self._transcriber, audio, self._rng)
        if error is not None and self._audit:
            await self._audit.log(AuditEventBuilder.transcription_failed(
                error_message=error,
                fallback=text,
            ))
        return await self.send(text, from_voice=True)

    def stop_speaking(self) -> None:
        if self._speaker is not None:
            self._speaker.cancel()

    def clear(self) -> None:
        self.stop_speaking()
        self.history = [ChatMessage(role="assistant", content=WELCOME_MESSAGE)]
