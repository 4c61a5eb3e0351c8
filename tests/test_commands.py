"""Tests for the commands module."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from unittest import mock

import pytest
from blocklog.blocks import UserContext, create_block
from blocklog.commands import (
    cli,
    export_blocks,
    get_session,
    import_blocks,
    log_handler,
    set_verbose_level,
)
from blocklog.models import Block, User
from click.testing import CliRunner
from sqlalchemy.orm import Session

from .factories import API_PAYLOAD, make_fields

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def db_uri(tmp_path: Path) -> str:
    """URI of a scratch SQLite database."""
    return f"sqlite:///{tmp_path / 'blocks.db'}"


def test_get_session(db_uri: str) -> None:
    """Test getting a SQLAlchemy session."""
    session = get_session(db_uri)
    assert isinstance(session, Session)
    assert session.query(Block).count() == 0


def test_set_verbose_level() -> None:
    """Test setting the logger verbosity level."""
    logger_mock = mock.Mock()
    with mock.patch("blocklog.commands.logger", logger_mock):
        set_verbose_level(0)
        logger_mock.setLevel.assert_called_once_with(logging.INFO)

        logger_mock.reset_mock()
        set_verbose_level(1)
        logger_mock.setLevel.assert_called_once_with(logging.DEBUG)

        logger_mock.reset_mock()
        set_verbose_level(2)
        logger_mock.setLevel.assert_called_once_with(logging.DEBUG)


def test_export_blocks(db_uri: str, tmp_path: Path) -> None:
    """A user's blocks are written to a JSON file, most recent first."""
    session = get_session(db_uri)
    user = User(email="driver@example.com")
    other = User(email="other@example.com")
    session.add_all([user, other])
    session.commit()
    ctx = UserContext(user.id)
    first = create_block(ctx, make_fields(pickup_location="A"), session)
    second = create_block(ctx, make_fields(pickup_location="B"), session)
    create_block(UserContext(other.id), make_fields(pickup_location="C"), session)
    expected_ids = [second.id, first.id]
    session.close()

    output_file = tmp_path / "output.json"
    runner = CliRunner()
    result = runner.invoke(
        export_blocks,
        [str(output_file), db_uri, "--email", "driver@example.com"],
    )

    assert result.exit_code == 0
    assert "Exported 2 blocks" in result.output
    exported = json.loads(output_file.read_text())
    assert [b["id"] for b in exported] == expected_ids
    assert exported[0]["pickup_location"] == "B"
    assert exported[0]["pay"] == "100.00"


def test_export_unknown_user(db_uri: str, tmp_path: Path) -> None:
    """Exporting for an unknown email fails."""
    runner = CliRunner()
    result = runner.invoke(
        export_blocks,
        [str(tmp_path / "out.json"), db_uri, "--email", "nobody@example.com"],
    )
    assert result.exit_code != 0
    assert "Unknown user nobody@example.com" in result.output


def test_import_blocks(db_uri: str, tmp_path: Path) -> None:
    """Valid entries become new blocks of the user, invalid ones are skipped."""
    negative = dict(API_PAYLOAD, pay="-1")
    sub_cent = dict(API_PAYLOAD, pay="0.004")
    entries = [API_PAYLOAD, dict(API_PAYLOAD, id=7), negative, sub_cent]
    input_file = tmp_path / "input.json"
    input_file.write_text(json.dumps(entries))

    runner = CliRunner()
    result = runner.invoke(
        import_blocks,
        [str(input_file), db_uri, "--email", "new@example.com"],
    )

    assert result.exit_code == 0
    assert "Added: 2, Skipped: 2" in result.output

    session = get_session(db_uri)
    user = session.query(User).filter_by(email="new@example.com").one()
    assert session.query(Block).filter_by(created_by=user.id).count() == 2


def test_cli_attaches_handler_once(db_uri: str, tmp_path: Path) -> None:
    """The console handler is added when the CLI runs, and only once."""
    commands_logger = logging.getLogger("blocklog.commands")
    commands_logger.removeHandler(log_handler)
    assert log_handler not in commands_logger.handlers

    runner = CliRunner()
    args = ["export-blocks", str(tmp_path / "out.json"), db_uri, "--email", "x@y.z"]
    runner.invoke(cli, args)
    runner.invoke(cli, args)

    assert commands_logger.handlers.count(log_handler) == 1
    commands_logger.removeHandler(log_handler)
