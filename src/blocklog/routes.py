"""Routes for the Blocklog app."""

from __future__ import annotations

from functools import wraps
from logging import getLogger
from typing import TYPE_CHECKING, Callable

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from sqlalchemy.exc import SQLAlchemyError

from .blocks import (
    BlockNotFoundError,
    UserContext,
    ValidationError,
    create_block,
    delete_block,
    get_block,
    get_latest,
    update_block,
)
from .dashboard import CHART_TITLE, compute_stats
from .database import db
from .feed import build_feed
from .firebase import invalidate_token, verify_id_token
from .forms import BlockFormValues
from .models import User

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask
    from werkzeug import Response

logger = getLogger(__name__)

main = Blueprint("main", __name__)

USER_ID = "user_id"
TRY_AGAIN_MSG = "Something went wrong. Please try again later."
NOT_FOUND_MSG = "Block not found."
API_ONLY_MSG = "This block does not fit the form. Edit it through the API."


def login_required(f: Callable) -> Callable:
    """Redirect anonymous users to the landing page."""

    @wraps(f)
    def decorated_function(*args, **kwargs) -> Response | str:  # noqa: ANN002, ANN003
        """Check that there is a logged in user."""
        user_id = session.get(USER_ID)
        if not user_id:
            return redirect(url_for("main.index"))

        # The session may outlive the user row
        if not db.session.get(User, user_id):
            return redirect(url_for("main.logout"))

        return f(*args, **kwargs)

    return decorated_function


def current_context() -> UserContext:
    """Identity of the logged in user, for the store access layer."""
    return UserContext(user_id=session[USER_ID])


def flash_errors(error: ValidationError) -> None:
    """Show one notification per offending field."""
    for message in error.errors.values():
        flash(message, "danger")


def database_failure() -> None:
    """Roll back the request session and tell the user to try again."""
    logger.exception("Database error")
    db.session.rollback()
    flash(TRY_AGAIN_MSG, "danger")


def render_feed(
    form: BlockFormValues | None = None,
    *,
    show_form: bool = False,
    status: int = 200,
) -> tuple[str, int]:
    """Render the feed page, optionally with the block dialog open."""
    cards = build_feed(get_latest(current_context(), db.session))
    return (
        render_template(
            "blocks.html",
            cards=cards,
            form=form or BlockFormValues.empty(),
            show_form=show_form,
        ),
        status,
    )


@main.route("/")
def index() -> Response | str:
    """Render the landing page or send logged in users to their feed."""
    if USER_ID in session:
        return redirect(url_for("main.blocks"))
    return render_template("index.html")


@main.route("/login", methods=["GET", "POST"])
def login() -> Response | str:
    """Exchange a Firebase ID token for an app session."""
    if request.method == "GET":
        if request.args.get("logged_out"):
            flash("You have been logged out.", "info")
        error = request.args.get("error")
        if error and isinstance(error, str):
            flash(error, "danger")
        return render_template(
            "login.html",
            firebase_config=current_app.config["FIREBASE_WEB_CONFIG"],
        )

    try:
        firebase_data = verify_id_token(request.form["idToken"])
        email = firebase_data["email"]
        session["firebase_uid"] = firebase_data["uid"]
    except (KeyError, ValueError):
        logger.exception("Error verifying ID token")
        return redirect(url_for("main.logout", error="Authentication failed"))

    user = db.session.query(User).filter_by(email=email).first()
    if not user:
        logger.info("Registering new user. email=%s", email)
        user = User(email=email, name=firebase_data.get("name"))
        db.session.add(user)
        db.session.commit()

    session[USER_ID] = user.id
    logger.info("User %s logged in. email=%s", user.id, email)
    flash(f"Welcome, {user.display_name}", "success")

    rotate_session_id()
    return redirect(url_for("main.blocks"))


def rotate_session_id() -> None:
    """Rotate the session id for the current session.

    Guards against session fixation after logging in.
    """
    old_session = dict(session)
    session.clear()
    session.update(old_session)


@main.route("/logout")
def logout() -> Response:
    """Logout the user."""
    firebase_uid = session.get("firebase_uid")
    if firebase_uid and current_app.config["FIREBASE_ENABLED"]:
        try:
            invalidate_token(firebase_uid)
        except ValueError:
            logger.warning("Could not revoke tokens of %s", firebase_uid, exc_info=True)

    session.clear()
    error = request.args.get("error")
    if error:
        return redirect(url_for("main.login", logged_out=True, error=error))
    return redirect(url_for("main.login", logged_out=True))


@main.route("/blocks", methods=["GET"])
@login_required
def blocks() -> Response | tuple[str, int]:
    """Render the feed of the user's blocks.

    ?add=1 opens an empty block dialog, ?edit=<id> opens it pre-filled.
    """
    edit_id = request.args.get("edit", type=int)
    if edit_id is not None:
        try:
            block = get_block(current_context(), edit_id, db.session)
        except BlockNotFoundError:
            flash(NOT_FOUND_MSG, "danger")
            return redirect(url_for("main.blocks"))
        try:
            form = BlockFormValues.from_block(block)
        except ValueError:
            flash(API_ONLY_MSG, "warning")
            return redirect(url_for("main.blocks"))
        return render_feed(form, show_form=True)

    return render_feed(show_form=bool(request.args.get("add")))


@main.route("/blocks", methods=["POST"])
@login_required
def add_block() -> Response | tuple[str, int]:
    """Create a block from the submitted form."""
    form = BlockFormValues.from_form(request.form)
    try:
        create_block(current_context(), form.to_fields(), db.session)
    except ValidationError as e:
        flash_errors(e)
        return render_feed(form, show_form=True, status=400)
    except SQLAlchemyError:
        database_failure()
        return render_feed(form, show_form=True, status=500)

    flash("Block added.", "success")
    return redirect(url_for("main.blocks"))


@main.route("/blocks/<int:block_id>/edit", methods=["POST"])
@login_required
def edit_block(block_id: int) -> Response | tuple[str, int]:
    """Overwrite a block with the submitted form."""
    form = BlockFormValues.from_form(request.form, block_id=block_id)
    try:
        update_block(current_context(), block_id, form.to_fields(), db.session)
    except ValidationError as e:
        flash_errors(e)
        return render_feed(form, show_form=True, status=400)
    except BlockNotFoundError:
        flash(NOT_FOUND_MSG, "danger")
        return redirect(url_for("main.blocks"))
    except SQLAlchemyError:
        database_failure()
        return render_feed(form, show_form=True, status=500)

    flash("Block updated.", "success")
    return redirect(url_for("main.blocks"))


@main.route("/blocks/<int:block_id>/delete", methods=["POST"])
@login_required
def remove_block(block_id: int) -> Response:
    """Delete a block and go back to the feed."""
    try:
        delete_block(current_context(), block_id, db.session)
    except BlockNotFoundError:
        flash(NOT_FOUND_MSG, "danger")
    except SQLAlchemyError:
        database_failure()
    else:
        flash("Block deleted.", "success")
    return redirect(url_for("main.blocks"))


@main.route("/dashboard")
@login_required
def dashboard() -> str:
    """Render the totals, averages and pickup location breakdown."""
    stats = compute_stats(get_latest(current_context(), db.session))
    return render_template(
        "dashboard.html",
        stats=stats,
        chart_title=CHART_TITLE,
        chart_data=stats.chart_data(),
    )


def register_routes(app: Flask) -> Blueprint:
    """Register the routes with the app."""
    app.register_blueprint(main)
    return main
