import logging
import traceback

from flask import current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError

from models import storage
from utils.exceptions import ApiError
from api.utils.cookies import clear_session_cookies
from api.utils.responses import api_response

logger = logging.getLogger(__name__)


def error_response(status: int, message: str, data=None, err: Exception | None = None):
    extra = {}
    if err is not None and current_app and current_app.debug:
        extra["stack"] = traceback.format_exception(type(err), err, err.__traceback__)
    return api_response(status, message, data, **extra)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        response, status = error_response(err.status_code, err.message, err=err)
        if err.clear_session:
            clear_session_cookies(response, current_app.extensions["auth_settings"])
        return response, status

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response(422, "Invalid input", data=err.messages)

    # Integrity errors (unique constraints, FK violations, check constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        storage.rollback()
        lower_msg = str(getattr(err, "orig", err)).lower()
        if current_app and current_app.debug:
            logger.exception("Integrity error", exc_info=err)
        if "unique" in lower_msg:
            return error_response(409, "Unique constraint violated", err=err)
        if "foreign key" in lower_msg:
            return error_response(400, "Foreign key constraint failed", err=err)
        return error_response(400, "Integrity error", err=err)

    # Werkzeug HTTPExceptions (abort(...)) map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        if err.code is not None and err.code < 400:
            # Routing redirects (e.g. missing trailing slash)
            return err
        return error_response(err.code or 400, err.description or err.name)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        message = "An unexpected error occurred"
        if current_app and current_app.debug:
            message = f"{err.__class__.__name__}: {err}"
        return error_response(500, message, err=err)
