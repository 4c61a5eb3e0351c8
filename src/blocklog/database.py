"""Engine and request scoped session, set up independently of the Flask app."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, text
from sqlalchemy.orm import scoped_session, sessionmaker

from .models import Base

if TYPE_CHECKING:
    from flask import Flask
    from sqlalchemy.engine import Engine

logger = getLogger(__name__)


class DB:
    """Database.

    Flask-SQLAlchemy is not used: the store access functions take a plain
    session so they also run from the command line tools and the tests,
    which swap `session` for one bound to a rolled back connection.
    """

    engine: Engine | None = None
    session: scoped_session

    def init_app(self, app: Flask) -> None:
        """Connect to SQLALCHEMY_DATABASE_URI and close sessions after requests.

        The engine is created once per process. Later apps share it.
        """
        app.teardown_appcontext(self.shutdown_session)

        if self.engine:
            logger.debug("Database already initialized. Ignored.")
            return

        # pre_ping drops connections MySQL closed while idle
        self.engine = create_engine(
            app.config["SQLALCHEMY_DATABASE_URI"],
            pool_pre_ping=True,
        )
        self.session = scoped_session(sessionmaker(bind=self.engine))

    def shutdown_session(self, _exception: BaseException | None = None) -> None:
        """Remove the session after the request is finished."""
        self.session.remove()

    def create_all(self) -> None:
        """Create the tables that do not exist yet."""
        if not self.engine:
            msg = "DB engine is not initialized."
            raise RuntimeError(msg)
        logger.debug("Creating database tables.")
        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> None:
        """Raise SQLAlchemyError unless the database answers."""
        self.session.execute(text("SELECT 1"))


db = DB()
