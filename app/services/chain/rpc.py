import asyncio
import logging
from traceback import format_exc
from typing import Optional

from web3 import Web3
from web3.exceptions import TransactionNotFound

from app.errors import TransientNetworkError
from app.models.payments import ChainReceipt, ChainTransaction

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ChainClient:
    """Read-only access to transactions over the chain's JSON-RPC endpoint."""

    TIMEOUT = 30  # seconds

    def __init__(self, rpc_url: str, web3: Optional[Web3] = None):
        self.rpc_url = rpc_url
        self.web3 = web3 or Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self.TIMEOUT})
        )

    async def get_receipt(self, transaction_hash: str) -> Optional[ChainReceipt]:
        """
        Get the receipt of a transaction.

        Args:
            transaction_hash: Hash of the transaction

        Returns:
            ChainReceipt, or None if the transaction is not indexed yet

        Raises:
            TransientNetworkError: If the RPC endpoint cannot be reached
        """
        try:
            receipt = await asyncio.to_thread(
                self.web3.eth.get_transaction_receipt, transaction_hash
            )
        except TransactionNotFound:
            return None
        except Exception as e:
            logger.error(
                f"Failed to get receipt for {transaction_hash}: {str(e)}\n{format_exc()}"
            )
            raise TransientNetworkError(f"Chain RPC unavailable: {str(e)}") from e

        if receipt is None:
            return None

        return ChainReceipt(
            transaction_hash=transaction_hash,
            success=receipt["status"] == 1,
            block_number=receipt.get("blockNumber"),
        )

    async def get_transaction(self, transaction_hash: str) -> Optional[ChainTransaction]:
        """Get sender, recipient and value of a transaction, or None if unknown."""
        try:
            tx = await asyncio.to_thread(
                self.web3.eth.get_transaction, transaction_hash
            )
        except TransactionNotFound:
            return None
        except Exception as e:
            logger.error(
                f"Failed to get transaction {transaction_hash}: {str(e)}\n{format_exc()}"
            )
            raise TransientNetworkError(f"Chain RPC unavailable: {str(e)}") from e

        if tx is None:
            return None

        return ChainTransaction(
            transaction_hash=transaction_hash,
            sender=tx.get("from"),
            to=tx.get("to"),
            value_wei=int(tx.get("value", 0)),
        )
