"""Domain errors raised by the activity and invoicing services."""

from __future__ import annotations


class StaffManagerError(Exception):
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(StaffManagerError):
    kind = "not_found"


class BusinessRuleViolation(StaffManagerError):
    """Valid data that cannot be processed as requested."""

    kind = "business_rule"


class NoMissionFoundError(BusinessRuleViolation):
    kind = "no_mission_found"


class MultipleSocietiesFoundError(BusinessRuleViolation):
    kind = "multiple_societies_found"


class IntegrationFailure(StaffManagerError):
    """Rendering or object storage failed."""

    kind = "integration_failure"
