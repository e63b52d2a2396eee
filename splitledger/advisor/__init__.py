"""Canned financial advisor and its chat session."""

from splitledger.advisor.rules import (
    RULES,
    AdviceRule,
    build_rules,
    match_rule,
)
from splitledger.advisor.advisor import (
    MICROPHONE_ERROR_MESSAGE,
    SERVICE_ERROR_MESSAGE,
    WELCOME_MESSAGE,
    AdvisorChat,
    FinancialAdvisor,
)

__all__ = [
    "RULES",
    "AdviceRule",
    "build_rules",
    "match_rule",
    "MICROPHONE_ERROR_MESSAGE",
    "SERVICE_ERROR_MESSAGE",
    "WELCOME_MESSAGE",
    "AdvisorChat",
    "FinancialAdvisor",
]
