"""Tests for the credentialing CLI."""

from click.testing import CliRunner

from conftest import ADMIN_ID, NOW
from credentialing.cli import cli
from credentialing.services import notification_service, oig_import_service, record_service

CSV = (
    "LASTNAME,FIRSTNAME,NPI,STATE,EXCLTYPE,EXCLDATE,REINDATE\n"
    "DOE,JANE,1234567893,CA,1128a1,20190520,00000000\n"
)


def test_refresh_oig_from_file(db, tmp_path):
    path = tmp_path / "UPDATED.csv"
    path.write_text(CSV, encoding="utf-8")

    result = CliRunner().invoke(cli, ["refresh-oig", "--file", str(path)])

    assert result.exit_code == 0, result.output
    assert "Imported 1 exclusions" in result.output
    db.expire_all()
    assert oig_import_service.count_exclusions(db) == 1


def test_refresh_oig_rejects_bad_file(db, tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("NAME\nDOE\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["refresh-oig", "--file", str(path)])

    assert result.exit_code == 1
    assert "missing columns" in result.output


def test_sweep_alerts_with_no_records(db):
    result = CliRunner().invoke(cli, ["sweep-alerts", "--workers", "1"])
    assert result.exit_code == 0, result.output
    assert "Checked 0 providers" in result.output
    assert "Notifications: 0 sent" in result.output


def test_run_verifications_unknown_provider(db):
    result = CliRunner().invoke(
        cli, ["run-verifications", "--provider-id", "00000000-0000-0000-0000-000000000000"]
    )
    assert result.exit_code == 1
    assert "not found" in result.output


def test_send_notifications_without_resend_key(db, provider):
    record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()

    result = CliRunner().invoke(cli, ["send-notifications"])

    assert result.exit_code == 0, result.output
    assert "0 sent, 0 failed, 1 skipped" in result.output
    db.expire_all()
    assert notification_service.pending_notifications(db, limit=10) == []
