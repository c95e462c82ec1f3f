import asyncio
import logging

import requests

from app.errors import TransientNetworkError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ExplorerClient:
    """Block explorer REST API, used as a first-pass existence check."""

    TIMEOUT = 10  # seconds

    def __init__(self, api_url: str, ui_url: str):
        self.api_url = api_url.rstrip("/")
        self.ui_url = ui_url.rstrip("/")

    def transaction_url(self, transaction_hash: str) -> str:
        """Link a user can open to check the transaction themselves."""
        return f"{self.ui_url}/tx/{transaction_hash}"

    def _fetch_transaction_status(self, transaction_hash: str) -> int:
        response = requests.get(
            f"{self.api_url}/transactions/{transaction_hash}",
            timeout=self.TIMEOUT,
            headers={"Accept": "application/json"},
        )
        return response.status_code

    async def transaction_exists(self, transaction_hash: str) -> bool:
        """
        Check whether the explorer has indexed a transaction.

        Raises:
            TransientNetworkError: If the explorer cannot be reached
        """
        try:
            status_code = await asyncio.to_thread(
                self._fetch_transaction_status, transaction_hash
            )
        except requests.RequestException as e:
            raise TransientNetworkError(f"Explorer API unreachable: {str(e)}") from e

        if status_code >= 500:
            raise TransientNetworkError(f"Explorer API returned HTTP {status_code}")
        return status_code == 200
