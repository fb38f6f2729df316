from __future__ import annotations

import json
import logging
from typing import Optional

import typer
from dotenv import load_dotenv

app = typer.Typer(help="Vitals portfolio sync CLI")


def _check_runtime() -> None:
    try:
        import sqlalchemy  # noqa: F401
    except Exception as e:
        typer.echo(
            "Runtime dependency error: SQLAlchemy failed to import.\n"
            "Create a venv and run:\n"
            "  python -m venv .venv\n"
            "  source .venv/bin/activate\n"
            "  pip install -e .\n\n"
            f"Original error: {type(e).__name__}: {e}",
            err=True,
        )
        raise typer.Exit(code=1)


@app.command("init-db")
def init_db_cmd():
    load_dotenv()
    _check_runtime()
    from vitals.db.init_db import init_db
    from vitals.db.session import get_database_url

    init_db()
    typer.echo(f"Initialized {get_database_url()}")


@app.command("store-token")
def store_token_cmd(
    user_id: int = typer.Option(...),
    organization_id: int = typer.Option(...),
    integration_config_id: int = typer.Option(...),
    token: str = typer.Option(..., prompt=True, hide_input=True, help="Orion session token"),
):
    load_dotenv()
    _check_runtime()
    from vitals.core.credential_store import ACCESS_TOKEN_KEY, CredentialError, mask_secret, upsert_credential
    from vitals.db.init_db import init_db
    from vitals.db.session import get_session

    init_db()
    with get_session() as session:
        try:
            upsert_credential(
                session,
                user_id=user_id,
                organization_id=organization_id,
                integration_config_id=integration_config_id,
                key=ACCESS_TOKEN_KEY,
                plaintext=token.strip(),
            )
        except CredentialError as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(code=2)
        session.commit()
    typer.echo(f"Stored token {mask_secret(token.strip())} for user={user_id} config={integration_config_id}")


@app.command("sync-run")
def sync_run_cmd(
    user_id: int = typer.Option(...),
    organization_id: int = typer.Option(...),
    integration_config_id: int = typer.Option(...),
    timeout: Optional[float] = typer.Option(None, help="Seconds to wait for the job (default: no limit)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Queue one portfolio sync, wait for it, and print the final job record."""
    load_dotenv()
    _check_runtime()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    from vitals.core.sync_jobs import FAILED
    from vitals.core.sync_service import SyncConfigError, build_default_service
    from vitals.db.init_db import init_db

    init_db()
    try:
        service = build_default_service()
    except SyncConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2)

    result = service.enqueue_sync(user_id, organization_id, integration_config_id)
    if not result.success:
        typer.echo(f"Failed to queue sync: {result.error}", err=True)
        raise typer.Exit(code=1)
    if not service.shutdown(wait=True, timeout=timeout):
        typer.echo(f"Sync {result.job_id} still running after {timeout}s", err=True)
        raise typer.Exit(code=1)

    job = service.get_job_status(result.job_id)
    if job is None:
        typer.echo(f"Sync job {result.job_id} disappeared", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(job.to_dict(), indent=2))
    if job.status == FAILED:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
