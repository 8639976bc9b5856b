from marvelvault.models.confirmation import (
    ConfirmationPhrase,
    is_confirmed,
    require_confirmation,
)
from marvelvault.models.failure import (
    ApiResponse,
    ConfirmationRequiredError,
    FailureDetail,
    FailureKind,
    KnownError,
    MigrationConflictError,
    NotFoundError,
    OutcomeType,
    ReferentialIntegrityError,
    RefusalError,
    ValidationFailedError,
    create_unknown_failure,
    finalize_response,
)
from marvelvault.models.migration import (
    CardConflict,
    MigrationLogEntry,
    MigrationPreview,
    MigrationRequest,
    MigrationResult,
    RollbackResult,
    SetActionResult,
    SetSummary,
)
from marvelvault.models.principal import AdminPrincipal

__all__ = [
    "AdminPrincipal",
    "ApiResponse",
    "CardConflict",
    "ConfirmationPhrase",
    "ConfirmationRequiredError",
    "FailureDetail",
    "FailureKind",
    "KnownError",
    "MigrationConflictError",
    "MigrationLogEntry",
    "MigrationPreview",
    "MigrationRequest",
    "MigrationResult",
    "NotFoundError",
    "OutcomeType",
    "ReferentialIntegrityError",
    "RefusalError",
    "RollbackResult",
    "SetActionResult",
    "SetSummary",
    "ValidationFailedError",
    "create_unknown_failure",
    "finalize_response",
    "is_confirmed",
    "require_confirmation",
]
