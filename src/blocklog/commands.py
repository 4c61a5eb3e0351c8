"""Export and import a user's blocks."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import click
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .api import fields_from_json
from .blocks import UserContext, ValidationError, create_block, get_latest
from .models import Base, User

if TYPE_CHECKING:
    from sqlalchemy.orm.session import Session

logger = logging.getLogger(__name__)
log_handler = logging.StreamHandler()

verbose_option = click.option(
    "-v",
    "--verbose",
    count=True,
    default=0,
    help="-v for DEBUG",
)
email_option = click.option(
    "--email",
    required=True,
    help="Email of the user owning the blocks.",
)


@click.group()
def cli() -> None:
    """Export and import blocks."""
    if log_handler not in logger.handlers:
        logger.addHandler(log_handler)


def get_session(db_uri: str) -> Session:
    """Get a SQLAlchemy session, creating the tables if needed."""
    engine = create_engine(db_uri)
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine)
    return session_factory()


def set_verbose_level(verbose: int) -> None:
    """Set the verbosity of the logger."""
    if verbose == 1:
        logger.setLevel(logging.DEBUG)
    elif verbose > 1:
        logger.setLevel(logging.DEBUG)
        sqllogger = logging.getLogger("sqlalchemy.engine")
        sqllogger.setLevel(logging.INFO)
        sqllogger.addHandler(log_handler)
    else:
        logger.setLevel(logging.INFO)


@click.command("export-blocks")
@click.argument("output_file", type=click.File("w"))
@click.argument("db_uri", type=str)
@email_option
@verbose_option
def export_blocks(
    verbose: int,
    email: str,
    output_file: click.File,
    db_uri: str,
) -> None:
    """Export a user's blocks to a JSON file."""
    set_verbose_level(verbose)
    session = get_session(db_uri)

    user = session.query(User).filter_by(email=email).first()
    if not user:
        msg = f"Unknown user {email}"
        raise click.ClickException(msg)

    blocks = get_latest(UserContext(user.id), session)
    block_list = [block.to_dict() for block in blocks]
    logger.debug("Exporting %s blocks of %s", len(block_list), email)

    json.dump(block_list, output_file, ensure_ascii=False, indent=4)  # type: ignore[arg-type]
    click.echo(f"Exported {len(block_list)} blocks to {output_file.name}")


@click.command("import-blocks")
@click.argument("input_file", type=click.File("r"))
@click.argument("db_uri", type=str)
@email_option
@verbose_option
def import_blocks(
    verbose: int,
    email: str,
    input_file: click.File,
    db_uri: str,
) -> None:
    """Import blocks from a JSON file as new blocks of a user.

    The user is created if it does not exist. Ids in the file are ignored.
    """
    set_verbose_level(verbose)
    data = json.load(input_file)  # type: ignore[arg-type]

    session = get_session(db_uri)

    user = session.query(User).filter_by(email=email).first()
    if not user:
        logger.info("Creating user %s", email)
        user = User(email=email)
        session.add(user)
        session.commit()

    ctx = UserContext(user.id)
    n_added, n_skipped = 0, 0
    for item in data:
        try:
            create_block(ctx, fields_from_json(item), session)
        except ValidationError as e:
            block_id = item.get("id") if isinstance(item, dict) else None
            logger.warning("Skipping block %s: %s", block_id, e)
            n_skipped += 1
            continue
        n_added += 1

    click.echo(f"Added: {n_added}, Skipped: {n_skipped}")


cli.add_command(export_blocks)
cli.add_command(import_blocks)

if __name__ == "__main__":
    cli()
