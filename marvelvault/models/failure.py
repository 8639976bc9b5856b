"""
Failure explanation envelope: unified response classification.

Every failure returned by the migration console is classified so the
admin UI can tell an expected, recoverable refusal (e.g. unconfirmed
card-number conflicts) apart from a validation error or an unexplained
crash.

Response types:
- Success: Operation completed successfully
- Refusal: System chose not to proceed until the admin confirms
- KnownFailure: System knows why it failed
- UnknownFailure: System does not know why it failed

All non-success bodies pass through `finalize_response()`.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"
    IDENTICAL_SETS = "identical_sets"
    EMPTY_SOURCE = "empty_source"
    CONFIRMATION_REQUIRED = "confirmation_required"

    # Resource failures
    NOT_FOUND = "not_found"

    # State violations
    ALREADY_CANONICAL = "already_canonical"
    ALREADY_ROLLED_BACK = "already_rolled_back"

    # Referential integrity
    SET_HAS_CARDS = "set_has_cards"
    CARDS_OWNED_BY_USERS = "cards_owned_by_users"
    CANONICAL_PROTECTED = "canonical_protected"

    # Refusals awaiting explicit confirmation
    MIGRATION_CONFLICT = "migration_conflict"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    REFUSAL = "refusal"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="Admin-facing explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the admin",
    )


class ApiResponse(BaseModel, Generic[T]):
    """
    Response envelope for console failures.

    Refusals may carry `data` (e.g. the conflict list) so the UI can
    render what needs confirming.
    """

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    data: T | None = Field(
        default=None,
        description="Response data (success payload, or context for a refusal)",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details (present on non-success)",
    )

    @classmethod
    def refusal(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        data: Any = None,
    ) -> "ApiResponse[Any]":
        """
        Create a refusal response.

        Use when the system chose not to proceed until the caller confirms.
        Example: card-number conflicts without the confirmation phrase.
        """
        return cls(
            outcome=OutcomeType.REFUSAL,
            data=data,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse[Any]":
        """
        Create a known failure response.

        Use when the system knows exactly why the operation failed.
        Example: Set not found, wrong confirmation phrase.
        """
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )


# Standard exception types that map to known failures


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class NotFoundError(KnownError):
    """A referenced set, main set or migration log does not exist."""

    def __init__(self, resource: str, resource_id: int):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"{resource} {resource_id} not found",
            status_code=404,
        )


class ValidationFailedError(KnownError):
    """Request rejected before any side effect."""

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.INVALID_INPUT,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            kind=kind,
            message=message,
            detail=detail,
            suggestion=suggestion,
            status_code=400,
        )


class ConfirmationRequiredError(KnownError):
    """
    The typed confirmation phrase was missing or did not match exactly.

    The expected phrase is echoed back so the UI can prompt for it.
    """

    def __init__(self, phrase: str, action: str):
        self.phrase = phrase
        self.action = action
        super().__init__(
            kind=FailureKind.CONFIRMATION_REQUIRED,
            message=f"Confirmation required to {action}",
            detail=f"Type exactly: {phrase}",
            suggestion="The phrase is case-sensitive and must not contain extra spaces.",
            status_code=400,
        )


class ReferentialIntegrityError(KnownError):
    """
    A lifecycle action is blocked by existing data.

    The kind distinguishes "has cards" from "cards owned by users"
    from "canonical set".
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            kind=kind,
            message=message,
            detail=detail,
            suggestion=suggestion,
            status_code=409,
        )


class RefusalError(Exception):
    """
    Exception for confirmation-gated refusals.

    Use when the system refuses to proceed until the admin explicitly
    confirms. Carries optional data for the UI to render.
    """

    status_code = 409

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        data: Any = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.data = data
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.refusal(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            data=self.data,
        )


class MigrationConflictError(RefusalError):
    """
    Card-number conflicts exist and were not confirmed.

    The full preview (including every conflict) travels with the error.
    """

    def __init__(self, preview: Any, phrase: str):
        self.preview = preview
        conflict_count = preview.conflict_count
        super().__init__(
            kind=FailureKind.MIGRATION_CONFLICT,
            message=f"{conflict_count} card number conflict(s) between source and destination",
            detail=f"Type exactly: {phrase}",
            suggestion="Review the conflicts, then confirm to migrate anyway.",
            data=preview.to_dict(),
        )


# =============================================================================
# FAILURE AUTHORITY BOUNDARY
# =============================================================================

STANDARD_MESSAGES: dict[OutcomeType, str] = {
    OutcomeType.UNKNOWN_FAILURE: (
        "The operation failed for an unknown reason. No changes were saved."
    ),
}

STANDARD_SUGGESTIONS: dict[OutcomeType, str] = {
    OutcomeType.UNKNOWN_FAILURE: "If this persists, please report the issue.",
}


def finalize_response(response: ApiResponse[Any]) -> ApiResponse[Any]:
    """
    Check that a response is classified consistently before it is sent.

    Raises:
        ValueError: If response structure is invalid
    """
    if response.outcome == OutcomeType.SUCCESS:
        if response.failure is not None:
            raise ValueError("Success response must not have failure details")
    else:
        if response.failure is None:
            raise ValueError(f"{response.outcome.value} response must have failure details")

    return response


def create_unknown_failure(
    exception: Exception,
    include_type: bool = True,
) -> ApiResponse[Any]:
    """
    Create an unknown failure response from an exception.

    The message is fixed and cannot be customized.
    """
    detail = None
    if include_type:
        detail = f"{type(exception).__name__}"

    response: ApiResponse[Any] = ApiResponse(
        outcome=OutcomeType.UNKNOWN_FAILURE,
        failure=FailureDetail(
            kind=FailureKind.UNKNOWN,
            message=STANDARD_MESSAGES[OutcomeType.UNKNOWN_FAILURE],
            detail=detail,
            suggestion=STANDARD_SUGGESTIONS[OutcomeType.UNKNOWN_FAILURE],
        ),
    )

    return finalize_response(response)
