import asyncio
import logging
from abc import ABC, abstractmethod
from traceback import format_exc
from typing import List, Optional

from web3 import Web3

from app.errors import PaymentSubmissionError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class WalletProvider(ABC):
    """Abstract base class for wallets able to sign a native token transfer."""

    @property
    @abstractmethod
    def accounts(self) -> List[str]:
        """Accounts the user allowed this session to use."""
        pass

    @property
    def context_accounts(self) -> List[str]:
        """Accounts of the profile the session runs in, if any."""
        return []

    @abstractmethod
    async def send_transaction(self, to: str, value_wei: int) -> str:
        """Sign and broadcast a transfer from the first account, returning its hash."""
        pass


class LocalAccountWallet(WalletProvider):
    """Wallet backed by a private key held by this process."""

    GAS_LIMIT = 21000  # plain value transfer

    def __init__(self, web3: Web3, private_key: Optional[str], chain_id: int):
        self.web3 = web3
        self.chain_id = chain_id
        self._account = web3.eth.account.from_key(private_key) if private_key else None

    @property
    def accounts(self) -> List[str]:
        return [self._account.address] if self._account else []

    def _sign_and_send(self, to: str, value_wei: int) -> str:
        sender = self._account.address
        tx = {
            "to": Web3.to_checksum_address(to),
            "value": value_wei,
            "nonce": self.web3.eth.get_transaction_count(sender),
            "gas": self.GAS_LIMIT,
            "gasPrice": self.web3.eth.gas_price,
            "chainId": self.chain_id,
        }
        signed = self._account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def send_transaction(self, to: str, value_wei: int) -> str:
        if not self._account:
            raise PaymentSubmissionError("No accounts available")

        try:
            return await asyncio.to_thread(self._sign_and_send, to, value_wei)
        except Exception as e:
            logger.error(f"Failed to send transaction: {str(e)}\n{format_exc()}")
            raise PaymentSubmissionError(f"Failed to send transaction: {str(e)}") from e
