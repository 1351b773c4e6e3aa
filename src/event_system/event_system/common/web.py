from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Optional

from flask import jsonify, session

from ..core.enums import ErrorKind
from ..core.result import Result

log = logging.getLogger(__name__)

HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 400,
    ErrorKind.VALIDATION: 400,
}


def current_email() -> Optional[str]:
    """Caller identity put in the session by the authentication layer."""
    email = session.get("email")
    return str(email) if email else None


def identity_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_email():
            return jsonify({"success": False, "message": "Authentication required"}), 401
        return view(*args, **kwargs)

    return wrapper


def failure_response(result: Result[Any]):
    status = HTTP_STATUS.get(result.error, 400)
    return jsonify({"success": False, "error": result.error.value, "message": result.message}), status


def json_errors(view):
    """Turn unexpected exceptions into a generic 500 (details go to the log)."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except Exception:
            log.exception("Unhandled error in %s", view.__name__)
            return jsonify({"success": False, "message": "Internal server error"}), 500

    return wrapper
