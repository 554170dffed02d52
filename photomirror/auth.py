from pathlib import Path
from typing import List

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from loguru import logger

from photomirror.config import SCOPES
from photomirror.exceptions import AuthError


class AuthManager:
    """
    Manages Google Photos API authentication,
    reading/writing the token file, refreshing creds, etc.
    """

    def __init__(self, token_file: Path, credentials_json: Path, scopes: List[str] = SCOPES):
        self.token_file = Path(token_file)
        self.credentials_json = Path(credentials_json)
        self.scopes = scopes
        self.creds = None

    def clear(self):
        """
        Forget the cached token so the next authenticate() asks again.
        """
        if self.token_file.exists():
            logger.info(f"Removing cached token {self.token_file}")
            self.token_file.unlink()
        self.creds = None

    def authenticate(self) -> Credentials:
        """
        Loads credentials from token file if valid; otherwise performs OAuth flow.
        """
        if self.token_file.exists():
            try:
                self.creds = Credentials.from_authorized_user_file(str(self.token_file), self.scopes)
            except ValueError:
                logger.warning("Token file corrupt. Re-authenticating.")
                self.token_file.unlink()
                self.creds = None

        # If no creds, or invalid/expired creds, do the flow
        if not self.creds or not self.creds.valid:
            if self.creds and self.creds.expired and self.creds.refresh_token:
                try:
                    self.creds.refresh(Request())
                except RefreshError as e:
                    raise AuthError(f"Could not refresh credentials: {e}") from e
            else:
                if not self.credentials_json.exists():
                    raise AuthError(
                        f"{self.credentials_json} not found. Download the OAuth client "
                        "secrets from Google Cloud Console first."
                    )
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self.credentials_json),
                    self.scopes
                )
                self.creds = flow.run_local_server(port=0)

            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.token_file, "w") as token:
                token.write(self.creds.to_json())

        return self.creds
