"""Firebase Admin SDK: credentials, login tokens and logout."""

from __future__ import annotations

import base64
import json
from logging import getLogger
from typing import TYPE_CHECKING, Any

import firebase_admin  # type: ignore[import-untyped]
from firebase_admin import auth, credentials, exceptions

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask

logger = getLogger(__name__)

CLOCK_SKEW_SECONDS = 2


def load_credentials(
    cred_json_base64: str | None,
    cred_file: str,
) -> credentials.Certificate:
    """Service account credentials.

    Taken from the base64 encoded JSON when given, else from cred_file.
    Raises ValueError when neither can be read.
    """
    if cred_json_base64:
        try:
            cred_dict = json.loads(base64.b64decode(cred_json_base64))
        except ValueError as e:
            msg = "FIREBASE_CRED_JSON is not base64 encoded JSON"
            raise ValueError(msg) from e
        return credentials.Certificate(cred_dict)

    try:
        return credentials.Certificate(cred_file)
    except OSError as e:
        msg = (
            f"Firebase credentials file not found: {cred_file}."
            " Download it from the Firebase console"
            " and point FLASK_FIREBASE_CRED_FILE at it."
        )
        raise ValueError(msg) from e


def init_firebase(app: Flask) -> None:
    """Initialize the Admin SDK from the app config, once per process."""
    try:
        firebase_app = firebase_admin.get_app()
    except ValueError:
        cred = load_credentials(
            app.config["FIREBASE_CRED_JSON"],
            app.config["FIREBASE_CRED_FILE"],
        )
        firebase_app = firebase_admin.initialize_app(cred)
        logger.info("Firebase Admin SDK initialized.")
    app.extensions["firebase"] = firebase_app


def verify_id_token(id_token: str) -> dict[str, Any]:
    """Decode a Firebase ID token sent by the login page.

    Raises ValueError when the token is not valid.
    """
    try:
        return auth.verify_id_token(id_token, clock_skew_seconds=CLOCK_SKEW_SECONDS)
    except (ValueError, exceptions.FirebaseError) as e:
        msg = "Token verification failed"
        raise ValueError(msg) from e


def invalidate_token(uid: str) -> None:
    """Revoke the refresh tokens of a Firebase user."""
    try:
        auth.revoke_refresh_tokens(uid)
    except (ValueError, exceptions.FirebaseError) as e:
        msg = "Token invalidation failed"
        raise ValueError(msg) from e
