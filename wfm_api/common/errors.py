# wfm_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from wfm_api.extensions import db
from .http import fail


class APIError(Exception):
    """Business-rule failure raised by services and rendered as the fail envelope."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


def bad_request(message, payload=None):
    return APIError("VALIDATION_ERROR", message, 400, payload)


def unauthorized(message="Unauthorized"):
    return APIError("UNAUTHORIZED", message, 401)


def forbidden(message="Forbidden"):
    return APIError("FORBIDDEN", message, 403)


def not_found(message="Not found"):
    return APIError("NOT_FOUND", message, 404)


def conflict(message, payload=None):
    return APIError("CONFLICT", message, 409, payload)


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        db.session.rollback()
        return fail(e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _dup(e: IntegrityError):
        db.session.rollback()
        app.logger.warning("integrity error: %s", getattr(e, "orig", e))
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR")

    @app.errorhandler(Exception)
    def _500(e: Exception):
        db.session.rollback()
        app.logger.exception(e)
        return fail("Internal server error", status=500)
