"""Exception types and the translation of errors into JSON responses.

Every view lets errors propagate; the handlers installed by
``register_error_handlers`` turn them into ``{"error": message}`` bodies.
The status comes from, in order: an HTTP exception's own code, an explicit
``status_code`` on the error, the error's name (JWT and validation errors),
the Postgres SQLSTATE carried by database errors, and finally 500.
"""
import logging
import traceback

from werkzeug.exceptions import HTTPException

from core.imports import jsonify, current_app
from core.extensions import db, jwt

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message or "Internal Server Error"
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


# name -> (status, fixed message or None to keep the error's own message)
NAMED_ERRORS = {
    "TokenExpiredError": (401, "Token expired"),
    "ExpiredSignatureError": (401, "Token expired"),
    "JsonWebTokenError": (401, "Invalid token"),
    "InvalidTokenError": (401, "Invalid token"),
    "DecodeError": (401, "Invalid token"),
    "InvalidSignatureError": (401, "Invalid token"),
    "ValidationError": (400, None),
}

PG_ERRORS = {
    "23505": (409, "Resource already exists"),
    "23503": (400, "Referenced resource does not exist"),
    "23502": (400, "Missing required field"),
    "23514": (400, "Value violates a data constraint"),
}

# SQLite reports constraint failures only as text
SQLITE_CONSTRAINTS = (
    ("UNIQUE constraint failed", "23505"),
    ("FOREIGN KEY constraint failed", "23503"),
    ("NOT NULL constraint failed", "23502"),
    ("CHECK constraint failed", "23514"),
)


def _error_name(err):
    name = getattr(err, "name", None)
    if isinstance(name, str) and name in NAMED_ERRORS:
        return name
    for cls in type(err).__mro__:
        if cls.__name__ in NAMED_ERRORS:
            return cls.__name__
    return None


def _sqlstate(err):
    code = getattr(err, "code", None)
    if isinstance(code, str) and len(code) == 5 and code.isalnum():
        return code

    orig = getattr(err, "orig", None)
    if orig is None:
        return None

    for attr in ("pgcode", "sqlstate"):
        value = getattr(orig, attr, None)
        if value:
            return value

    message = str(orig)
    for marker, sqlstate in SQLITE_CONSTRAINTS:
        if marker in message:
            return sqlstate
    return None


def _message(err):
    message = getattr(err, "message", None)
    if isinstance(message, str) and message:
        return message
    text_ = str(err)
    return text_ or "Internal Server Error"


def classify_error(err):
    """Return ``(status_code, message)`` for any exception."""
    if isinstance(err, HTTPException):
        return err.code or 500, err.description or err.name

    status = getattr(err, "status_code", None)
    if status is None:
        status = getattr(err, "statusCode", None)
    if isinstance(status, int):
        return status, _message(err)

    name = _error_name(err)
    if name:
        status, fixed = NAMED_ERRORS[name]
        return status, fixed or _message(err)

    sqlstate = _sqlstate(err)
    if sqlstate in PG_ERRORS:
        return PG_ERRORS[sqlstate]

    return 500, _message(err)


def error_response(err, show_details=None):
    status, message = classify_error(err)
    body = {"error": message}

    if isinstance(err, AppError) and err.payload:
        body.update(err.payload)

    if show_details is None:
        show_details = current_app.config.get("SHOW_ERROR_DETAILS", False)
    if show_details:
        body["stack"] = "".join(traceback.format_exception(type(err), err, err.__traceback__))
        body["details"] = repr(err)

    return jsonify(body), status


def handle_exception(err):
    # a failed request never leaves partial writes behind
    db.session.rollback()

    response, status = error_response(err)
    if status >= 500:
        logger.error("Unhandled error: %s", err, exc_info=err)
    elif not isinstance(err, HTTPException):
        logger.info("Request failed with %s: %s", status, response.get_json()["error"])
    return response, status


class _TokenError(Exception):
    def __init__(self, name, message):
        super().__init__(message)
        self.name = name


def register_error_handlers(app):
    app.register_error_handler(Exception, handle_exception)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response(_TokenError("TokenExpiredError", "jwt expired"))

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response(_TokenError("JsonWebTokenError", reason))

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response(AuthError(reason))
