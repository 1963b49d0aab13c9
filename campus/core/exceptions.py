"""
Typed failures raised by the admissions, registration and ledger services.

Every failure carries a machine-readable ``kind`` plus the offending field
and value so views can render an actionable message.
"""


class LifecycleError(Exception):
    kind = "error"

    def __init__(self, message, *, field=None, value=None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def as_dict(self):
        return {
            "kind": self.kind,
            "field": self.field,
            "value": self.value,
            "message": self.message,
        }

    def __str__(self):
        return self.message


class Unauthorized(LifecycleError):
    kind = "unauthorized"


class InvalidTransition(LifecycleError):
    kind = "invalid_transition"


class DuplicateActiveApplication(LifecycleError):
    kind = "duplicate_active_application"


class AlreadyRegistered(LifecycleError):
    kind = "already_registered"


class NoApprovedApplication(LifecycleError):
    kind = "no_approved_application"


class InvalidSubjectSelection(LifecycleError):
    kind = "invalid_subject_selection"


class ValidationError(LifecycleError):
    kind = "validation_error"


class PartialRegistration(LifecycleError):
    """Registration stored, but some subject memberships were not written."""

    kind = "partial_registration"

    def __init__(self, message, *, registration_id, missing_codes):
        super().__init__(message, field="subject_codes", value=list(missing_codes))
        self.registration_id = registration_id
        self.missing_codes = list(missing_codes)

    def as_dict(self):
        data = super().as_dict()
        data["registration_id"] = self.registration_id
        data["missing_codes"] = self.missing_codes
        return data
