"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - FIELD VALIDATION:
- Required fields (title, amount, category, payer)
- At least two participants, nobody added twice
- Payer is one of the participants
- Supported currency

STAGE 2 - SPLIT VALIDATION:
- Percentage splits sum to 100%
- Exact splits sum to the total
- Dates far in the future are flagged (warning only)

Stage 2 is skipped when stage 1 fails: reconciling shares of a draft with
no amount or no participants only produces noise.

IMPORTANT: Validation NEVER silently fixes issues. Nothing is mutated here;
converting shares into amounts is finalize_split()'s job.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from splitledger.config import AppSettings, get_settings
from splitledger.models.transaction import (
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
)
from splitledger.splitting.calculator import get_strategy


class TransactionValidator:
    """
    Validates a TransactionDraft before it reaches the ledger.

    Error messages are written for the person filling in the form.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def tolerance(self) -> Decimal:
        return self._settings.split_tolerance

    def _validate_fields(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Field validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not draft.title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Please enter a title for the transaction",
                severity="error",
            ))

        if draft.amount is None or draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Please enter a valid amount",
                severity="error",
                suggested_fix="Enter an amount greater than zero",
            ))

        if not draft.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Please select a category",
                severity="error",
            ))

        if not draft.paid_by:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="missing",
                message="Please select who paid",
                severity="error",
            ))

        ids = draft.participant_ids()
        if len(ids) < 2:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="too_few",
                message="Please add at least one more person to split with",
                severity="error",
            ))

        if len(ids) != len(set(ids)):
            issues.append(ValidationIssue(
                field="participants",
                issue_type="duplicate",
                message="This person is already added to the transaction",
                severity="error",
                suggested_fix="Remove the duplicate participant",
            ))

        if draft.paid_by and draft.paid_by not in ids:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="not_a_participant",
                message="The person who paid must be one of the participants",
                severity="error",
            ))

        if draft.currency not in self._settings.supported_currencies_list:
            issues.append(ValidationIssue(
                field="currency",
                issue_type="unsupported",
                message=f"Currency {draft.currency} is not supported",
                severity="error",
                suggested_fix=f"Use one of: {', '.join(self._settings.supported_currencies_list)}",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_split(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Split validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        strategy = get_strategy(draft.split_method)
        message = strategy.check(draft.amount, draft.participants, self.tolerance)
        if message:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="split_mismatch",
                message=message,
                severity="error",
            ))

        max_future_date = date.today() + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if draft.transaction_date > max_future_date:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"Transaction date ({draft.transaction_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        """Run both validation stages and collect every issue found."""
        all_issues = []

        fields_valid, field_issues = self._validate_fields(draft)
        all_issues.extend(field_issues)

        # Only run stage 2 if stage 1 passes
        split_valid = False
        if fields_valid:
            split_valid, split_issues = self._validate_split(draft)
            all_issues.extend(split_issues)

        return ValidationResult(
            fields_valid=fields_valid,
            split_valid=split_valid,
            issues=all_issues,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the add-transaction page shows.
        """
        if result.is_valid and not result.warnings:
            return "✅ Everything adds up. Ready to save."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following before saving:")
            for message in result.error_messages:
                lines.append(f"  • {message}")

        if result.warnings:
            lines.append("⚠️ Please double-check:")
            for message in result.warnings:
                lines.append(f"  • {message}")

        return "\n".join(lines)
