"""
Exception taxonomy for SAFE generation.

Every error carries a machine-readable code and the HTTP status the API
answers with, so routes can translate them without a lookup table.
"""
from typing import Dict, Optional


class SafeError(Exception):
    """Base exception for all SAFE generator errors"""
    status_code = 500
    code = "SAFE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class ValidationError(SafeError):
    """Bad user input: unparseable date, non-numeric amount, missing required field"""
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field = field
        self.errors = errors or ({field: message} if field else {})

    def to_dict(self):
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        if self.errors:
            payload["fields"] = self.errors
        return payload


class UnknownTemplateType(SafeError):
    """Investment type does not select any of the SAFE templates"""
    status_code = 400
    code = "UNKNOWN_TEMPLATE_TYPE"

    def __init__(self, investment_type):
        super().__init__(f"No SAFE template for investment type '{investment_type or ''}'")
        self.investment_type = investment_type


class TemplateUnavailable(SafeError):
    """Template could not be fetched from the template store"""
    status_code = 503
    code = "TEMPLATE_UNAVAILABLE"

    def __init__(self, template_name: str, reason: str = ""):
        message = f"Template '{template_name}' is unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.template_name = template_name


class TemplateCorrupt(SafeError):
    """Template bytes are not a readable Word document"""
    status_code = 500
    code = "TEMPLATE_CORRUPT"

    def __init__(self, template_name: str, reason: str = ""):
        message = f"Template '{template_name}' is not a valid document"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.template_name = template_name


class EntityNotFound(SafeError):
    """A referenced fund, company, user or investment does not exist"""
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id):
        super().__init__(f"{resource_type} with id '{resource_id}' not found")
        self.resource_type = resource_type
        self.resource_id = resource_id


class PersistenceError(SafeError):
    """A store operation failed; the wizard must not advance"""
    status_code = 502
    code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, kind: str, reason: str = ""):
        message = f"Failed to {operation} {kind}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.operation = operation
        self.kind = kind
