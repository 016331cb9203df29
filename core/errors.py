"""
Error taxonomy for the clinic data layer.

Services raise these; pages catch ClinicError and show the message.
Validation failures normally never get this far: entity services return
them as a field-keyed dict instead.
"""
from dataclasses import dataclass
from typing import Dict, Optional


class ClinicError(Exception):
    """Base class for all data-layer errors."""


class AuthorizationDenied(ClinicError):
    """Session present but no (or mismatched) profile, or role not permitted."""


class AuthenticationRequired(AuthorizationDenied):
    """No authenticated session."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class ValidationFailed(ClinicError):
    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in self.errors.items()))


class NotFound(ClinicError):
    """Entity absent or outside the caller's clinic. The two are not distinguished."""

    def __init__(self, kind: str, entity_id: Optional[str] = None):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found")


class UpstreamFailure(ClinicError):
    """Backend or storage error. The original message is kept for diagnostics."""

    def __init__(self, message: str):
        self.original_message = message
        super().__init__(message)


class StorageUploadError(UpstreamFailure):
    def __init__(self, message: str):
        super().__init__(f"Upload failed: {message}")


class SignedUrlError(UpstreamFailure):
    def __init__(self, message: str):
        super().__init__(f"Signed URL generation failed: {message}")


@dataclass(frozen=True)
class OfflineQueued:
    """A mutation deferred to the offline queue. Not an error."""

    operation_id: str
    entity: str
    type: str
    entity_id: Optional[str] = None
