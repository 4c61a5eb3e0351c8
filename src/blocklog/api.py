"""JSON interface to the store access layer.

Same operations as the HTML pages, for scripts and other clients. Every
endpoint needs a logged in session, exactly like the pages.
"""

from __future__ import annotations

from datetime import datetime
from functools import wraps
from logging import getLogger
from typing import TYPE_CHECKING, Any, Callable

from flask import Blueprint, jsonify, request, session
from sqlalchemy.exc import SQLAlchemyError

from .blocks import (
    FIELD_LABELS,
    BlockFields,
    BlockNotFoundError,
    ValidationError,
    create_block,
    delete_block,
    get_block,
    get_latest,
    update_block,
)
from .clock import wall_clock
from .dashboard import compute_stats
from .database import db
from .forms import TIME_FIELDS, parse_mileage, parse_pay
from .models import User
from .routes import NOT_FOUND_MSG, TRY_AGAIN_MSG, USER_ID, current_context

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask
    from werkzeug import Response

logger = getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

AUTH_REQUIRED_MSG = "Authentication required"


def api_login_required(f: Callable) -> Callable:
    """Answer 401 instead of redirecting anonymous callers."""

    @wraps(f)
    def decorated_function(*args, **kwargs) -> Any:  # noqa: ANN002, ANN003, ANN401
        user_id = session.get(USER_ID)
        if not user_id or not db.session.get(User, user_id):
            return _error(AUTH_REQUIRED_MSG, 401)
        return f(*args, **kwargs)

    return decorated_function


def fields_from_json(payload: Any) -> BlockFields:  # noqa: ANN401
    """Build typed block fields from a JSON object.

    Timestamps are ISO-8601 strings, pay a number or a decimal string.
    """
    if not isinstance(payload, dict):
        raise ValidationError({"body": "Expected a JSON object"})

    errors: dict[str, str] = {}
    values: dict[str, Any] = {}

    for name in ("pickup_location", "city"):
        value = payload.get(name)
        if not isinstance(value, str) or not value.strip():
            errors[name] = f"{FIELD_LABELS[name]} is required"
        else:
            values[name] = value.strip()

    for name in TIME_FIELDS:
        value = payload.get(name)
        try:
            stamp = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            errors[name] = f"{FIELD_LABELS[name]} must be an ISO-8601 date and time"
            continue
        values[name] = wall_clock(stamp)

    for name, parse in (
        ("pay", parse_pay),
        ("mileage_start", parse_mileage),
        ("mileage_end", parse_mileage),
    ):
        value = payload.get(name)
        if value is None or isinstance(value, bool):
            errors[name] = f"{FIELD_LABELS[name]} is required"
            continue
        try:
            values[name] = parse(str(value))
        except ValueError:
            errors[name] = f"{FIELD_LABELS[name]} must be a number"

    if errors:
        raise ValidationError(errors)

    return BlockFields(**values)


def _error(message: str, status: int) -> tuple[Response, int]:
    return jsonify({"error": message}), status


@api.route("/blocks", methods=["GET"])
@api_login_required
def list_blocks() -> Response:
    """All the caller's blocks, most recent first."""
    blocks = get_latest(current_context(), db.session)
    return jsonify([block.to_dict() for block in blocks])


@api.route("/blocks", methods=["POST"])
@api_login_required
def create() -> tuple[Response, int]:
    """Create a block."""
    try:
        block_fields = fields_from_json(request.get_json(silent=True))
        block = create_block(current_context(), block_fields, db.session)
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    return jsonify(block.to_dict()), 201


@api.route("/blocks/<int:block_id>", methods=["GET"])
@api_login_required
def show(block_id: int) -> Response | tuple[Response, int]:
    """One block."""
    try:
        block = get_block(current_context(), block_id, db.session)
    except BlockNotFoundError:
        return _error(NOT_FOUND_MSG, 404)
    return jsonify(block.to_dict())


@api.route("/blocks/<int:block_id>", methods=["PUT"])
@api_login_required
def update(block_id: int) -> Response | tuple[Response, int]:
    """Overwrite every field of a block."""
    try:
        block_fields = fields_from_json(request.get_json(silent=True))
        block = update_block(current_context(), block_id, block_fields, db.session)
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except BlockNotFoundError:
        return _error(NOT_FOUND_MSG, 404)
    return jsonify(block.to_dict())


@api.route("/blocks/<int:block_id>", methods=["DELETE"])
@api_login_required
def delete(block_id: int) -> tuple[str, int] | tuple[Response, int]:
    """Delete a block."""
    try:
        delete_block(current_context(), block_id, db.session)
    except BlockNotFoundError:
        return _error(NOT_FOUND_MSG, 404)
    return "", 204


@api.route("/dashboard", methods=["GET"])
@api_login_required
def dashboard() -> Response:
    """Dashboard statistics."""
    stats = compute_stats(get_latest(current_context(), db.session))
    return jsonify(stats.to_dict())


@api.errorhandler(SQLAlchemyError)
def database_error(e: SQLAlchemyError) -> tuple[Response, int]:
    """Roll back and report a generic failure."""
    logger.error("Database error", exc_info=e)
    db.session.rollback()
    return _error(TRY_AGAIN_MSG, 500)


def register_api(app: Flask) -> Blueprint:
    """Register the JSON API with the app."""
    app.register_blueprint(api)
    return api
