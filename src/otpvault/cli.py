"""CLI entry point for otpvault."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import click
from rich.console import Console
from rich.live import Live
from rich.table import Table

from otpvault import clock
from otpvault.bundle import MIME_TYPE, bundle_filename, export_bundle, import_bundle
from otpvault.config import settings
from otpvault.crypto import cipher_from_settings, generate_key
from otpvault.entry import manual_credential
from otpvault.errors import OTPVaultError
from otpvault.models import Account, Algorithm
from otpvault.otp import display_code, format_code, verify
from otpvault.refresh import CodeRefresher, CodeSnapshot
from otpvault.secret import random_secret
from otpvault.storage import JsonFileStorage
from otpvault.store import AccountStore
from otpvault.uri import build_uri, parse_uri

console = Console()
err_console = Console(stderr=True)


def _open_store() -> AccountStore:
    storage = JsonFileStorage(settings.storage_path, cipher=cipher_from_settings(settings))
    return AccountStore(storage, settings.storage_key)


def _resolve(store: AccountStore, ref: str) -> Account:
    """Find an account by id or unique id prefix."""
    account = store.get(ref)
    if account is not None:
        return account
    matches = [a for a in store if a.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise click.ClickException(f"No account matches {ref!r}")
    raise click.ClickException(f"{ref!r} matches {len(matches)} accounts; use a longer id")


COUNTDOWN_WIDTH = 10


def _countdown_bar(fraction: float) -> str:
    filled = max(1, round(fraction * COUNTDOWN_WIDTH))
    return "█" * filled + "·" * (COUNTDOWN_WIDTH - filled)


def _codes_table(accounts: tuple[Account, ...] | list[Account], snaps: dict[str, CodeSnapshot] | None = None) -> Table:
    table = Table(title="Accounts")
    table.add_column("ID", style="dim")
    table.add_column("Issuer", style="bold")
    table.add_column("Account")
    table.add_column("Code", style="cyan", justify="right")
    table.add_column("Left", justify="right")
    table.add_column("Backup", justify="right")
    for a in accounts:
        snap = (snaps or {}).get(a.id)
        code = snap.code if snap else display_code(a)
        left = snap.remaining if snap else clock.remaining(a.period)
        fraction = snap.progress if snap else clock.progress(a.period)
        table.add_row(
            a.id[:8],
            a.issuer,
            a.label,
            format_code(code),
            f"{left:>3}s {_countdown_bar(fraction)}",
            str(len(a.backup_codes)) if a.backup_codes else "",
        )
    return table


class VaultGroup(click.Group):
    """Reports core errors as ordinary CLI errors instead of tracebacks."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except OTPVaultError as e:
            raise click.ClickException(str(e)) from e


@click.group(cls=VaultGroup)
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level.")
def main(verbose: bool) -> None:
    """otpvault — offline TOTP authenticator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


@main.command("add-uri")
@click.argument("uri")
def add_uri(uri: str) -> None:
    """Add an account from an otpauth:// URI (e.g. a decoded QR code)."""
    credential = parse_uri(uri)
    if credential is None:
        raise click.ClickException("Invalid QR code: not a valid TOTP provisioning URI")
    account = _open_store().add(credential)
    console.print(f"[green]Added {account.issuer} ({account.label})[/green] id={account.id[:8]}")


@main.command()
@click.option("--issuer", prompt="Service name", help="Service name, e.g. GitHub.")
@click.option("--label", prompt="Account name", help="Account at the service, e.g. alice@example.com.")
@click.option("--secret", prompt="Secret key", hide_input=True, help="Base32 secret key.")
@click.option("--algorithm", type=click.Choice([a.value for a in Algorithm], case_sensitive=False), default="SHA1")
@click.option("--digits", type=int, default=6, show_default=True)
@click.option("--period", type=int, default=30, show_default=True)
def add(issuer: str, label: str, secret: str, algorithm: str, digits: int, period: int) -> None:
    """Add an account by entering its details."""
    credential = manual_credential(issuer, label, secret, algorithm, digits, period)
    account = _open_store().add(credential)
    console.print(f"[green]Added {account.issuer} ({account.label})[/green] id={account.id[:8]}")


@main.command("list")
def list_accounts() -> None:
    """Show every account with its current code."""
    store = _open_store()
    if not len(store):
        console.print("No accounts yet. Add one with [bold]otpvault add[/bold] or [bold]add-uri[/bold].")
        return
    console.print(_codes_table(store.accounts))


@main.command()
@click.option("--seconds", type=float, default=None, help="Stop after this many seconds.")
def watch(seconds: float | None) -> None:
    """Show codes, refreshing once per interval until Ctrl+C."""
    store = _open_store()
    if not len(store):
        console.print("No accounts to watch.")
        return

    accounts = store.accounts
    snaps: dict[str, CodeSnapshot] = {}
    changed = threading.Event()

    def on_tick(snap: CodeSnapshot) -> None:
        snaps[snap.account_id] = snap
        changed.set()

    refresher = CodeRefresher(on_tick, interval=settings.refresh_interval)
    done = threading.Event()
    if seconds is not None:
        timer = threading.Timer(seconds, done.set)
        timer.daemon = True
        timer.start()
    try:
        with Live(_codes_table(accounts), console=console, auto_refresh=False) as live:
            for account in accounts:
                refresher.watch(account)
            while not done.is_set():
                if changed.wait(0.2):
                    changed.clear()
                    live.update(_codes_table(accounts, dict(snaps)), refresh=True)
    except KeyboardInterrupt:
        pass
    finally:
        refresher.stop()


@main.command()
@click.argument("account_ref")
def code(account_ref: str) -> None:
    """Print the current code as plain text (for the clipboard)."""
    account = _resolve(_open_store(), account_ref)
    click.echo(display_code(account))


@main.command()
@click.argument("account_ref")
@click.argument("otp")
@click.option("--window", type=click.IntRange(min=0), default=1, show_default=True, help="Accepted time steps either side of now.")
def check(account_ref: str, otp: str, window: int) -> None:
    """Check a code against an account (exit status 1 when it does not match)."""
    account = _resolve(_open_store(), account_ref)
    if not verify(account, otp, window=window):
        raise click.ClickException("Code does not match")
    console.print("[green]Code is valid[/green]")


@main.command("new-secret")
@click.option("--length", type=click.IntRange(min=32), default=32, show_default=True)
def new_secret(length: int) -> None:
    """Print a fresh random base32 secret for enrolling a new service."""
    click.echo(random_secret(length))


@main.command()
@click.argument("account_ref")
@click.option("--issuer", default=None)
@click.option("--label", default=None)
def rename(account_ref: str, issuer: str | None, label: str | None) -> None:
    """Change an account's issuer and/or label."""
    store = _open_store()
    account = _resolve(store, account_ref)
    fields = {k: v for k, v in {"issuer": issuer, "label": label}.items() if v is not None}
    if not fields:
        raise click.UsageError("Nothing to change: pass --issuer and/or --label")
    store.update(account.id, **fields)
    console.print("[green]Account updated[/green]")


@main.command()
@click.argument("account_ref")
@click.confirmation_option(prompt="Delete this account? Its codes cannot be recovered.")
def remove(account_ref: str) -> None:
    """Delete one account."""
    store = _open_store()
    account = _resolve(store, account_ref)
    store.remove(account.id)
    console.print(f"Removed {account.issuer} ({account.label})")


@main.command()
@click.confirmation_option(prompt="Delete ALL accounts? This cannot be undone.")
def clear() -> None:
    """Delete every account."""
    _open_store().clear_all()
    console.print("All accounts cleared")


@main.command()
@click.argument("account_ref")
def secret(account_ref: str) -> None:
    """Reveal an account's secret key as plain text."""
    account = _resolve(_open_store(), account_ref)
    err_console.print("[yellow]Never share your secret key with anyone.[/yellow]")
    click.echo(account.secret)


@main.command()
@click.argument("account_ref")
def uri(account_ref: str) -> None:
    """Print the account's otpauth:// provisioning URI."""
    account = _resolve(_open_store(), account_ref)
    click.echo(build_uri(account))


@main.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path), required=False)
def export_cmd(path: Path | None) -> None:
    """Write a backup bundle (JSON)."""
    store = _open_store()
    if not len(store):
        raise click.ClickException("No accounts to export")
    path = path or Path(bundle_filename())
    path.write_bytes(export_bundle(store.accounts))
    console.print(f"[green]Backup exported[/green] to {path} ({MIME_TYPE})")


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_cmd(path: Path) -> None:
    """Import accounts from a backup bundle."""
    store = _open_store()
    accounts = import_bundle(path.read_bytes())
    store.import_many(accounts)
    console.print(f"[green]Imported {len(accounts)} account(s)[/green]")


@main.group("backup-codes")
def backup_codes() -> None:
    """Manage stored recovery codes."""


@backup_codes.command("list")
@click.argument("account_ref")
def backup_codes_list(account_ref: str) -> None:
    account = _resolve(_open_store(), account_ref)
    if not account.backup_codes:
        console.print(f"No backup codes stored for {account.issuer}")
        return
    for i, c in enumerate(account.backup_codes):
        console.print(f"  {i:>2}  {c}")


@backup_codes.command("add")
@click.argument("account_ref")
@click.argument("codes", nargs=-1, required=True)
def backup_codes_add(account_ref: str, codes: tuple[str, ...]) -> None:
    store = _open_store()
    account = _resolve(store, account_ref)
    for c in codes:
        store.add_backup_code(account.id, c)
    console.print(f"[green]Added {len(codes)} code(s)[/green]")


@backup_codes.command("remove")
@click.argument("account_ref")
@click.argument("index", type=int)
def backup_codes_remove(account_ref: str, index: int) -> None:
    store = _open_store()
    account = _resolve(store, account_ref)
    try:
        store.remove_backup_code(account.id, index)
    except IndexError as e:
        raise click.ClickException(str(e)) from e
    console.print("Code removed")


@backup_codes.command("clear")
@click.argument("account_ref")
def backup_codes_clear(account_ref: str) -> None:
    store = _open_store()
    account = _resolve(store, account_ref)
    store.set_backup_codes(account.id, [])
    console.print("Backup codes cleared")


@main.command()
def keygen() -> None:
    """Print a new master key for OTPVAULT_MASTER_KEY (encrypts the account file)."""
    click.echo(generate_key())


@main.command()
def status() -> None:
    """Show configuration."""
    console.print("[bold]otpvault status[/bold]")
    console.print(f"  Storage: {settings.storage_path}")
    console.print(f"  Encrypted: {'yes' if settings.master_key else 'no'}")
    console.print(f"  Accounts: {len(_open_store())}")


if __name__ == "__main__":
    main()
