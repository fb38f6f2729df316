from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from vitals.cli import app
from vitals.core.credential_store import ACCESS_TOKEN_KEY, get_credential
from vitals.db import session as db_session
from vitals.db.models import AumHistoryPoint, Client, PortfolioAccount

runner = CliRunner()


@pytest.fixture()
def tmp_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "data" / "vitals.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setattr(db_session, "_ENGINE", None)
    monkeypatch.setattr(db_session, "_SESSION_FACTORY", None)
    return db_path


def _write_fixtures(root: Path) -> None:
    (root / "aum").mkdir(parents=True)
    (root / "clients.json").write_text(
        json.dumps([{"id": "C1", "name": "Lovelace, Ada"}, {"id": "C2", "firstName": "Grace", "lastName": "Hopper"}])
    )
    (root / "accounts.json").write_text(
        json.dumps([{"id": "A1", "clientId": "C1"}, {"id": "A2", "clientId": "C404"}])
    )
    (root / "aum" / "C1.json").write_text(json.dumps([{"asOfDate": "2025-01-31", "value": 1000}]))


def test_init_db_creates_database(tmp_db):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert tmp_db.exists()


def test_sync_run_with_fixture_dir(tmp_db, tmp_path, monkeypatch):
    fixtures = tmp_path / "fixtures"
    _write_fixtures(fixtures)
    monkeypatch.setenv("PORTFOLIO_FIXTURE_DIR", str(fixtures))

    result = runner.invoke(
        app, ["sync-run", "--user-id", "1", "--organization-id", "10", "--integration-config-id", "5", "--timeout", "10"]
    )

    assert result.exit_code == 0, result.output
    assert '"status": "COMPLETED"' in result.output
    assert '"processed": 1' in result.output

    with db_session.get_session() as s:
        assert s.query(Client).count() == 2
        assert s.query(PortfolioAccount).count() == 1
        assert s.query(AumHistoryPoint).count() == 1


def test_sync_run_exits_nonzero_when_job_fails(tmp_db, tmp_path, monkeypatch):
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.setenv("PORTFOLIO_FIXTURE_DIR", str(empty))

    result = runner.invoke(
        app, ["sync-run", "--user-id", "1", "--organization-id", "10", "--integration-config-id", "5"]
    )

    assert result.exit_code == 1
    assert '"status": "FAILED"' in result.output
    assert "fixture not found: clients.json" in result.output


def test_store_token_encrypts_credential(tmp_db, monkeypatch):
    monkeypatch.setenv("APP_SECRET_KEY", "cli-secret")
    result = runner.invoke(
        app,
        [
            "store-token",
            "--user-id",
            "1",
            "--organization-id",
            "10",
            "--integration-config-id",
            "5",
            "--token",
            "sess-abcdef",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "cdef" in result.output
    assert "sess-abcdef" not in result.output

    with db_session.get_session() as s:
        assert (
            get_credential(s, user_id=1, organization_id=10, integration_config_id=5, key=ACCESS_TOKEN_KEY)
            == "sess-abcdef"
        )


def test_store_token_requires_secret_key(tmp_db, monkeypatch):
    monkeypatch.delenv("APP_SECRET_KEY", raising=False)
    result = runner.invoke(
        app,
        ["store-token", "--user-id", "1", "--organization-id", "10", "--integration-config-id", "5", "--token", "t"],
    )
    assert result.exit_code == 2
