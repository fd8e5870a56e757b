from typing import Dict, Optional


# --- Service Layer Exception Classes ---
# Each carries the HTTP status the API answers with.

class ServiceError(Exception):
    """General exception class for the service layer."""
    status_code = 500

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class InvalidDataError(ServiceError):
    """Missing or malformed input. `errors` maps field names to messages when known."""
    status_code = 400


class AuthenticationError(ServiceError):
    """Bad credentials or a missing/invalid/expired token."""
    status_code = 401


class AuthorizationError(ServiceError):
    """Authenticated, but not allowed to do this."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class PersistenceError(ServiceError):
    """A database or image host operation failed."""
    status_code = 500


def validation_errors_to_fields(errors) -> Dict[str, str]:
    """Flattens pydantic's error list into {field: message}."""
    fields = {}
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        fields[".".join(location) or "__root__"] = error.get("msg", "Invalid value")
    return fields
