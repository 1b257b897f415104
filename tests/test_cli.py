"""Tests for the command-line interface."""

from __future__ import annotations

import base64
import json

import pytest
from click.testing import CliRunner

from otpvault.cli import _open_store, main
from otpvault.config import Settings
from otpvault.crypto import generate_key

URI = "otpauth://totp/GitHub:alice?secret=JBSWY3DPEHPK3PXP&issuer=GitHub"


@pytest.fixture
def cfg(monkeypatch, tmp_path):
    s = Settings(_env_file=None, data_dir=tmp_path / "data")
    monkeypatch.setattr("otpvault.cli.settings", s)
    return s


@pytest.fixture
def runner():
    return CliRunner()


def _stored(cfg):
    return json.loads(cfg.storage_path.read_text())[cfg.storage_key]


def _only_id(cfg):
    (record,) = _stored(cfg)
    return record["id"]


def test_add_uri_and_list(cfg, runner):
    result = runner.invoke(main, ["add-uri", URI])
    assert result.exit_code == 0, result.output
    assert "Added GitHub (alice)" in result.output

    (record,) = _stored(cfg)
    assert record["issuer"] == "GitHub"
    assert record["secret"] == "JBSWY3DPEHPK3PXP"

    result = runner.invoke(main, ["list"])
    assert result.exit_code == 0
    assert "GitHub" in result.output


def test_add_uri_invalid(cfg, runner):
    result = runner.invoke(main, ["add-uri", "https://example.com"])
    assert result.exit_code == 1
    assert "Invalid QR code" in result.output
    assert not cfg.storage_path.exists()


def test_add_manual(cfg, runner):
    result = runner.invoke(
        main,
        ["add", "--issuer", "Bank", "--label", "me", "--secret", "jbsw y3dp ehpk 3pxp", "--digits", "8"],
    )
    assert result.exit_code == 0, result.output
    (record,) = _stored(cfg)
    assert record["secret"] == "JBSWY3DPEHPK3PXP"
    assert record["digits"] == 8


def test_add_manual_bad_secret(cfg, runner):
    result = runner.invoke(main, ["add", "--issuer", "Bank", "--label", "me", "--secret", "short"])
    assert result.exit_code == 1
    assert "Invalid secret key format" in result.output


def test_list_empty(cfg, runner):
    result = runner.invoke(main, ["list"])
    assert result.exit_code == 0
    assert "No accounts yet" in result.output


def test_code_secret_and_uri(cfg, runner):
    runner.invoke(main, ["add-uri", URI])
    account_id = _only_id(cfg)

    result = runner.invoke(main, ["code", account_id[:6]])
    assert result.exit_code == 0
    assert result.output.strip().isdigit()
    assert len(result.output.strip()) == 6

    result = runner.invoke(main, ["secret", account_id])
    assert "JBSWY3DPEHPK3PXP" in result.output

    result = runner.invoke(main, ["uri", account_id])
    assert result.output.strip() == URI


def test_unknown_account(cfg, runner):
    result = runner.invoke(main, ["code", "nope"])
    assert result.exit_code == 1
    assert "No account matches" in result.output


def test_rename(cfg, runner):
    runner.invoke(main, ["add-uri", URI])
    account_id = _only_id(cfg)
    result = runner.invoke(main, ["rename", account_id, "--label", "alice@work"])
    assert result.exit_code == 0, result.output
    assert _stored(cfg)[0]["label"] == "alice@work"

    result = runner.invoke(main, ["rename", account_id, "--issuer", "x" * 101])
    assert result.exit_code == 1


def test_remove_and_clear(cfg, runner):
    runner.invoke(main, ["add-uri", URI])
    runner.invoke(main, ["add-uri", URI.replace("GitHub", "GitLab")])
    first = _stored(cfg)[0]["id"]

    result = runner.invoke(main, ["remove", first, "--yes"])
    assert result.exit_code == 0
    assert [r["issuer"] for r in _stored(cfg)] == ["GitLab"]

    result = runner.invoke(main, ["clear"], input="y\n")
    assert result.exit_code == 0
    assert _stored(cfg) == []


def test_export_import(cfg, runner, tmp_path):
    runner.invoke(main, ["add-uri", URI])
    original_id = _only_id(cfg)
    bundle = tmp_path / "backup.json"

    result = runner.invoke(main, ["export", str(bundle)])
    assert result.exit_code == 0, result.output
    data = json.loads(bundle.read_text())
    assert data["version"] == 1
    assert len(data["accounts"]) == 1

    result = runner.invoke(main, ["import", str(bundle)])
    assert result.exit_code == 0, result.output
    assert "Imported 1 account(s)" in result.output
    ids = [r["id"] for r in _stored(cfg)]
    assert len(ids) == 2
    assert ids[0] == original_id
    assert ids[1] != original_id


def test_export_nothing(cfg, runner, tmp_path):
    result = runner.invoke(main, ["export", str(tmp_path / "b.json")])
    assert result.exit_code == 1
    assert "No accounts to export" in result.output


def test_import_invalid_bundle(cfg, runner, tmp_path):
    runner.invoke(main, ["add-uri", URI])
    bundle = tmp_path / "future.json"
    bundle.write_text(json.dumps({"version": 2, "exportedAt": 0, "accounts": []}))
    result = runner.invoke(main, ["import", str(bundle)])
    assert result.exit_code == 1
    assert "Unsupported backup bundle version" in result.output
    assert len(_stored(cfg)) == 1


def test_backup_codes(cfg, runner):
    runner.invoke(main, ["add-uri", URI])
    account_id = _only_id(cfg)

    result = runner.invoke(main, ["backup-codes", "add", account_id, "1111-2222", "3333-4444"])
    assert result.exit_code == 0, result.output
    assert _stored(cfg)[0]["backupCodes"] == ["1111-2222", "3333-4444"]

    result = runner.invoke(main, ["backup-codes", "add", account_id, "1111-2222"])
    assert result.exit_code == 1
    assert "already exists" in result.output

    result = runner.invoke(main, ["backup-codes", "list", account_id])
    assert "3333-4444" in result.output

    result = runner.invoke(main, ["backup-codes", "remove", account_id, "0"])
    assert result.exit_code == 0
    assert _stored(cfg)[0]["backupCodes"] == ["3333-4444"]

    result = runner.invoke(main, ["backup-codes", "remove", account_id, "9"])
    assert result.exit_code == 1

    runner.invoke(main, ["backup-codes", "clear", account_id])
    assert _stored(cfg)[0]["backupCodes"] == []


def test_encrypted_store(monkeypatch, tmp_path, runner):
    s = Settings(_env_file=None, data_dir=tmp_path, master_key=generate_key())
    monkeypatch.setattr("otpvault.cli.settings", s)
    result = runner.invoke(main, ["add-uri", URI])
    assert result.exit_code == 0, result.output
    assert "JBSWY3DPEHPK3PXP" not in s.storage_path.read_text()

    account_id = _open_store().accounts[0].id
    result = runner.invoke(main, ["secret", account_id])
    assert "JBSWY3DPEHPK3PXP" in result.output


def test_watch_runs_for_given_time(cfg, runner, monkeypatch):
    monkeypatch.setattr(cfg, "refresh_interval", 0.01)
    runner.invoke(main, ["add-uri", URI])
    result = runner.invoke(main, ["watch", "--seconds", "0.2"])
    assert result.exit_code == 0, result.output
    assert "GitHub" in result.output


def test_keygen(runner):
    result = runner.invoke(main, ["keygen"])
    assert len(base64.b64decode(result.output.strip())) == 32


def test_check_code(cfg, runner):
    from otpvault.otp import generate_totp

    runner.invoke(main, ["add-uri", URI])
    account = _open_store().accounts[0]

    result = runner.invoke(main, ["check", account.id, generate_totp(account)])
    assert result.exit_code == 0, result.output
    assert "Code is valid" in result.output

    wrong = "000000" if generate_totp(account) != "000000" else "111111"
    result = runner.invoke(main, ["check", account.id, wrong, "--window", "0"])
    assert result.exit_code == 1
    assert "does not match" in result.output


def test_new_secret(runner):
    from otpvault.secret import validate_secret

    result = runner.invoke(main, ["new-secret"])
    assert result.exit_code == 0
    secret = result.output.strip()
    assert len(secret) == 32
    assert validate_secret(secret)

    assert runner.invoke(main, ["new-secret", "--length", "16"]).exit_code == 2


def test_countdown_bar():
    from otpvault.cli import COUNTDOWN_WIDTH, _countdown_bar

    assert _countdown_bar(1.0) == "█" * COUNTDOWN_WIDTH
    assert _countdown_bar(0.5) == "█" * 5 + "·" * 5
    assert _countdown_bar(1 / 30).startswith("█")
    assert len(_countdown_bar(1 / 30)) == COUNTDOWN_WIDTH
