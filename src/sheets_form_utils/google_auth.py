from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from google.auth.credentials import Credentials as BaseCredentials
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
DEFAULT_TOKEN_PATH = Path("~/.config/sheets-form-utils/token.json").expanduser()


def service_account_credentials(key_file: Path, *, scopes: Sequence[str] = SHEETS_SCOPES) -> BaseCredentials:
    """Credentials for unattended runs (cron, trigger handlers).

    The service account's email must be given edit access to the
    spreadsheet.
    """
    key_file = Path(key_file).expanduser()
    if not key_file.exists():
        raise FileNotFoundError(f"service account key not found: {key_file}")
    return service_account.Credentials.from_service_account_file(str(key_file), scopes=list(scopes))


def user_credentials(
    *,
    scopes: Sequence[str] = SHEETS_SCOPES,
    credentials_path: Path | None = None,
    token_path: Path = DEFAULT_TOKEN_PATH,
) -> Credentials:
    """Stored user token, refreshed when expired; first run goes through the browser flow."""
    creds: Credentials | None = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), scopes=list(scopes))

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
        token_path.write_text(creds.to_json())
        return creds

    if not credentials_path:
        raise FileNotFoundError(
            "No valid token found. Run `form-utils auth --credentials credentials.json` "
            "or configure service_account_file."
        )

    token_path.parent.mkdir(parents=True, exist_ok=True)
    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=list(scopes))
    creds = flow.run_local_server(port=0)
    token_path.write_text(creds.to_json())
    return creds


def get_credentials(
    *,
    scopes: Sequence[str] = SHEETS_SCOPES,
    service_account_file: Path | None = None,
    credentials_path: Path | None = None,
    token_path: Path = DEFAULT_TOKEN_PATH,
) -> BaseCredentials:
    if service_account_file:
        logger.debug("using service account key %s", service_account_file)
        return service_account_credentials(service_account_file, scopes=scopes)
    return user_credentials(scopes=scopes, credentials_path=credentials_path, token_path=token_path)
