from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import Settings, load_settings
from .digest import compute_digest
from .duplicates import is_duplicate
from .engine import AppendOptions, sweep_all
from .errors import FormUtilsError
from .google_auth import DEFAULT_TOKEN_PATH, SHEETS_SCOPES, get_credentials
from .periodic import Period, get_or_create_sheet, get_periodic_sheet, periodic_sheet_name
from .sheets_client import SheetsWorkbook, sheets_service
from .store import Workbook

app = typer.Typer(add_completion=False, help="Google Sheets form submission utilities")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _open_workbook(
    settings: Settings,
    *,
    credentials: Optional[Path],
    token: Path,
    service_account: Optional[Path] = None,
) -> Workbook:
    if not settings.spreadsheet_id:
        raise typer.BadParameter("spreadsheet_id is not configured")
    creds = get_credentials(
        scopes=SHEETS_SCOPES,
        service_account_file=service_account or settings.service_account_file,
        credentials_path=credentials,
        token_path=token,
    )
    return SheetsWorkbook(sheets_service(creds), spreadsheet_id=settings.spreadsheet_id)


def _fail(e: FormUtilsError) -> None:
    typer.echo(f"error: {e}", err=True)
    raise typer.Exit(code=1)


@app.command()
def auth(
    credentials: Path = typer.Option(..., exists=True, help="Path to Google OAuth credentials.json"),
    token: Path = typer.Option(DEFAULT_TOKEN_PATH, help="Where to store token.json"),
):
    """Authenticate with Google and store a token file."""
    get_credentials(scopes=SHEETS_SCOPES, credentials_path=credentials, token_path=token)
    typer.echo(f"Token saved to: {token}")


@app.command()
def digest(
    values: List[str] = typer.Argument(..., help="Row values, timestamp first"),
    skip: int = typer.Option(1, min=0, help="Leading columns to leave out"),
    algorithm: str = typer.Option("sha1", help="hashlib algorithm name"),
):
    """Print the digest of a row."""
    try:
        typer.echo(compute_digest(values, skip=skip, algorithm=algorithm))
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.command("period-name")
def period_name(
    period: Period = typer.Option(Period.MONTH, help="month or year"),
    full: bool = typer.Option(False, help="January 2020 instead of JAN20"),
    shift: int = typer.Option(0, help="Periods to shift by (+ or -)"),
):
    """Print the name of the current time-bucket sheet."""
    typer.echo(periodic_sheet_name(period, abbreviated=not full, shift=shift))


@app.command("check-duplicate")
def check_duplicate(
    tab: str = typer.Argument(..., help="Sheet to search"),
    values: List[str] = typer.Argument(..., help="Row values, timestamp first"),
    config: Optional[Path] = typer.Option(None, help="Path to config.yaml"),
    credentials: Optional[Path] = typer.Option(None, help="Path to Google OAuth credentials.json (first run only)"),
    token: Path = typer.Option(DEFAULT_TOKEN_PATH, help="token.json path"),
    service_account: Optional[Path] = typer.Option(None, help="Service account key file, instead of a user token"),
):
    """Report whether a row already exists in a sheet."""
    settings = load_settings(config)
    workbook = _open_workbook(settings, credentials=credentials, token=token, service_account=service_account)
    table = workbook.table(tab)
    if table is None:
        raise typer.BadParameter(f"sheet not found: {tab}")

    opts = settings.append
    try:
        found = is_duplicate(
            values,
            table,
            mode=opts.duplicate_mode,
            skip=opts.skip,
            algorithm=opts.hash_algorithm,
            allow_raw=opts.allow_raw_duplicate_scan,
        )
    except FormUtilsError as e:
        _fail(e)
    typer.echo("duplicate" if found else "unique")


@app.command()
def sweep(
    source: Optional[str] = typer.Option(None, help="Sheet to take rows from"),
    destination: Optional[str] = typer.Option(None, help="Sheet to put rows into"),
    period: Optional[Period] = typer.Option(None, help="Sweep into the current month/year sheet"),
    copy: bool = typer.Option(False, "--copy", help="Keep rows in the source sheet"),
    config: Optional[Path] = typer.Option(None, help="Path to config.yaml"),
    credentials: Optional[Path] = typer.Option(None, help="Path to Google OAuth credentials.json (first run only)"),
    token: Path = typer.Option(DEFAULT_TOKEN_PATH, help="token.json path"),
    service_account: Optional[Path] = typer.Option(None, help="Service account key file, instead of a user token"),
):
    """Move (or copy) every non-empty row from one sheet to another."""
    settings = load_settings(config)
    workbook = _open_workbook(settings, credentials=credentials, token=token, service_account=service_account)

    source_name = source or settings.sweep.source_tab
    source_table = workbook.table(source_name)
    if source_table is None:
        raise typer.BadParameter(f"sheet not found: {source_name}")

    try:
        dest_name = destination or settings.sweep.destination_tab
        if period is None and not dest_name:
            # no named destination: archive into the configured time bucket
            period = settings.periodic.period

        if period is not None:
            dest_table = get_periodic_sheet(
                workbook,
                period,
                abbreviated=settings.periodic.abbreviated,
                template_name=settings.periodic.template_name,
            )
        else:
            dest_table = get_or_create_sheet(workbook, dest_name, settings.periodic.template_name)

        delete = settings.sweep.delete_from_source and not copy
        results = sweep_all(source_table, dest_table, delete, AppendOptions.from_settings(settings.append))
    except FormUtilsError as e:
        _fail(e)

    verb = "copied" if not delete else "moved"
    typer.echo(f"{verb} {len(results)} row(s)")


if __name__ == "__main__":
    app()
