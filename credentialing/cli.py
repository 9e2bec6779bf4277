"""CLI tools for credentialing operations."""

import asyncio
from pathlib import Path
from uuid import UUID

import click

from credentialing.core.exceptions import CredentialingError
from credentialing.core.structured_logging import configure_logging
from credentialing.db.session import SessionLocal


@click.group()
def cli():
    """Credentialing CLI tools."""
    configure_logging()


@cli.command()
def init_db():
    """
    Create all tables on the configured database.

    Intended for local development and SQLite; production uses Alembic.

    Example:
        python -m credentialing.cli init-db
    """
    from credentialing.db import models  # noqa: F401  (registers tables)
    from credentialing.db.base import Base
    from credentialing.db.session import engine

    Base.metadata.create_all(engine)
    click.echo("✓ Tables created")


@cli.command()
@click.option("--workers", type=int, default=None, help="Parallel evaluations")
def sweep_alerts(workers: int | None):
    """Daily alert sweep over all non-rejected providers, then send queued emails."""
    from credentialing.jobs import credentialing_sweep

    result = credentialing_sweep.run_alert_sweep(max_workers=workers)
    click.echo(
        f"✓ Checked {result.providers_checked} providers: "
        f"{result.alerts_created} alerts created, {result.alerts_escalated} escalated"
    )
    _send_pending()
    if result.errors:
        click.echo(f"❌ {result.errors} providers failed: {', '.join(result.failed_provider_ids)}")
        raise SystemExit(1)


def _send_pending() -> None:
    from credentialing.services import notification_service

    with SessionLocal() as db:
        result = asyncio.run(notification_service.deliver_pending(db))
    click.echo(
        f"✓ Notifications: {result.sent} sent, {result.failed} failed, {result.skipped} skipped"
    )


@cli.command()
def send_notifications():
    """Send queued provider emails."""
    _send_pending()


@cli.command()
def recheck_exclusions():
    """Re-run exclusion checks whose re-check date has passed."""
    from credentialing.jobs import credentialing_sweep
    from credentialing.services.registry_lookup import RegistryClient

    result = asyncio.run(credentialing_sweep.recheck_exclusions(RegistryClient()))
    click.echo(f"✓ Re-checked {result.providers_checked} providers ({result.checks_run} checks)")
    if result.errors:
        click.echo(f"❌ {result.errors} checks failed")
        raise SystemExit(1)


@cli.command()
@click.option(
    "--file",
    "csv_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Import a downloaded LEIE CSV instead of fetching it",
)
def refresh_oig(csv_path: Path | None):
    """Replace the local OIG exclusion list."""
    from credentialing.services import oig_import_service

    with SessionLocal() as db:
        try:
            if csv_path:
                text_content = csv_path.read_text(encoding="utf-8-sig", errors="replace")
                result = oig_import_service.import_csv(db, text_content)
            else:
                result = asyncio.run(oig_import_service.refresh_oig_list(db))
        except CredentialingError as e:
            raise click.ClickException(e.message) from e
    click.echo(f"✓ Imported {result.imported} exclusions ({result.skipped} rows skipped)")


@cli.command()
@click.option("--provider-id", required=True, type=click.UUID, help="Provider UUID")
@click.option("--actor-id", default=None, help="Admin user recorded in the audit log")
def run_verifications(provider_id: UUID, actor_id: str | None):
    """Run all automated verifications for one provider."""
    from credentialing.services import verification_service
    from credentialing.services.registry_lookup import RegistryClient

    with SessionLocal() as db:
        try:
            outcomes = asyncio.run(
                verification_service.run_batch(db, provider_id, RegistryClient(), actor_id=actor_id)
            )
        except CredentialingError as e:
            raise click.ClickException(e.message) from e

    for outcome in outcomes:
        if outcome.skipped:
            click.echo(f"- {outcome.verification_type.value}: skipped ({outcome.notes})")
        elif outcome.error:
            click.echo(f"❌ {outcome.verification_type.value}: {outcome.error}")
        else:
            click.echo(f"✓ {outcome.verification_type.value}: {outcome.status.value}")


if __name__ == "__main__":
    cli()
