"""
Runtime settings loaded from environment variables and an optional .env file.

Required values are checked by the entry points (require_transport,
require_sheets), not at import time, so tests and the console harness
run without credentials.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

load_dotenv(find_dotenv())

STORAGE_SHEETS = "sheets"
STORAGE_JSON = "json"


class Settings(BaseSettings):
    """Central configuration - values come from .env or environment variables."""

    # Telegram
    telegram_bot_token: Optional[str] = None
    telegram_api_base: str = "https://api.telegram.org"
    request_timeout: float = 10.0

    # Google Sheets
    spreadsheet_id: Optional[str] = None
    google_application_credentials: Optional[str] = None
    google_credentials_base64: Optional[str] = None
    sheet_range: str = "A:A"

    # Storage
    storage_backend: str = STORAGE_SHEETS
    output_dir: Path = Path("outputs/submissions")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def require_transport(self) -> str:
        """
        Telegram token, validated.

        Raises:
            ValueError: If TELEGRAM_BOT_TOKEN is missing
        """
        if not self.telegram_bot_token:
            raise ValueError("Missing required environment variable: TELEGRAM_BOT_TOKEN")
        return self.telegram_bot_token

    def require_sheets(self) -> None:
        """
        Validate the Google Sheets settings.

        Raises:
            ValueError: If SPREADSHEET_ID or GOOGLE_APPLICATION_CREDENTIALS
                is missing
        """
        if not self.spreadsheet_id:
            raise ValueError("Missing required environment variable: SPREADSHEET_ID")
        if not self.google_application_credentials:
            raise ValueError("Missing required environment variable: GOOGLE_APPLICATION_CREDENTIALS")

    def materialize_credentials(self, target: Path = Path("credentials.json")) -> Optional[str]:
        """
        Decode GOOGLE_CREDENTIALS_BASE64 into a key file for cloud deployments.

        Sets google_application_credentials to the written path. Does
        nothing when no base64 credentials are configured.

        Args:
            target: Where to write the decoded key file

        Returns:
            str: Path of the key file, or None if nothing was written

        Raises:
            ValueError: If the value is not valid base64
        """
        if not self.google_credentials_base64:
            return None

        try:
            decoded = base64.b64decode(self.google_credentials_base64, validate=True)
        except binascii.Error as e:
            raise ValueError(f"GOOGLE_CREDENTIALS_BASE64 is not valid base64: {e}") from e

        target = Path(target)
        target.write_bytes(decoded)
        self.google_application_credentials = str(target)
        logger.info(f"Google credentials loaded from GOOGLE_CREDENTIALS_BASE64 into {target}")
        return str(target)
