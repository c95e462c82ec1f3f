import logging
from decimal import Decimal, InvalidOperation
from traceback import format_exc
from typing import Awaitable, Callable, Optional, Protocol

from web3 import Web3

from app.errors import (
    InvalidTransitionError,
    PaymentSubmissionError,
    PaymentValidationError,
    PollingCancelledError,
    PollingExhaustedError,
    TransactionPendingError,
    TransientNetworkError,
    WorkflowError,
)
from app.models.payments import ChainReceipt, ChainTransaction, PendingTransaction
from app.models.shared import PaymentState
from app.orchestration.pricing import FeeCalculator, format_amount
from app.orchestration.scheduling import CancellationToken, PollingTask
from app.orchestration.workflow import WorkflowState
from app.services.chain.explorer import ExplorerClient
from app.services.chain.wallet import WalletProvider

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Largest accepted difference between the paid and the expected amount
AMOUNT_TOLERANCE = Decimal("0.01")


class TransactionLookup(Protocol):
    async def get_receipt(self, transaction_hash: str) -> Optional[ChainReceipt]: ...

    async def get_transaction(
        self, transaction_hash: str
    ) -> Optional[ChainTransaction]: ...


async def verify_payment(
    chain: TransactionLookup,
    transaction_hash: str,
    recipient: str,
    expected_amount: Optional[str] = None,
    explorer: Optional[ExplorerClient] = None,
) -> bool:
    """
    Check that a fee transfer landed on chain as expected.

    The explorer lookup is only a hint; the receipt, recipient and amount are
    always validated against the chain.

    Args:
        chain: Receipt and transaction lookup
        transaction_hash: Hash of the submitted transfer
        recipient: Address the fee must be paid to
        expected_amount: Amount in native token units, checked within ±0.01
        explorer: Optional block explorer for a first-pass existence check

    Returns:
        True when every check passed

    Raises:
        TransactionPendingError: The transaction is not indexed yet (retryable)
        TransientNetworkError: The chain could not be reached (retryable)
        PaymentValidationError: The transaction reverted, or paid the wrong
            recipient or amount (terminal)
    """
    if explorer is not None:
        try:
            if await explorer.transaction_exists(transaction_hash):
                logger.info(f"Transaction {transaction_hash} found via explorer API")
        except TransientNetworkError as e:
            logger.warning(f"Explorer API check failed, falling back to RPC: {str(e)}")

    receipt = await chain.get_receipt(transaction_hash)
    if receipt is None:
        raise TransactionPendingError("Transaction not found or not yet confirmed")

    if not receipt.success:
        raise PaymentValidationError("Transaction failed")

    tx = await chain.get_transaction(transaction_hash)
    if tx is None:
        raise TransactionPendingError("Transaction details not found")

    if not tx.to:
        raise PaymentValidationError("Transaction recipient is missing")

    actual_recipient = tx.to.lower()
    expected_recipient = recipient.lower()
    if actual_recipient != expected_recipient:
        raise PaymentValidationError(
            f"Incorrect payment recipient: {actual_recipient}, expected: {expected_recipient}"
        )

    if expected_amount is not None:
        paid = Decimal(Web3.from_wei(tx.value_wei, "ether"))
        try:
            expected = Decimal(expected_amount)
        except InvalidOperation as e:
            raise PaymentValidationError(
                f"Invalid expected amount: {expected_amount}"
            ) from e

        if abs(paid - expected) > AMOUNT_TOLERANCE:
            raise PaymentValidationError(
                f"Incorrect payment amount: {format_amount(paid)}, expected: {expected_amount}"
            )

    return True


class PaymentOrchestrator:
    """
    Quotes the fee, submits the transfer and polls until it is confirmed.

    State machine:
        idle -> submitting -> awaiting_confirmation -> confirmed | timed_out | failed

    ``timed_out`` is recoverable: ``reverify`` polls again and
    ``confirm_manually`` accepts the user's word for it. ``failed`` needs a
    ``reset`` back to ``idle``.
    """

    POLL_INTERVAL = 5  # seconds
    MAX_ATTEMPTS = 24

    TRANSITIONS = {
        PaymentState.IDLE: {PaymentState.SUBMITTING},
        PaymentState.SUBMITTING: {PaymentState.AWAITING_CONFIRMATION, PaymentState.FAILED},
        PaymentState.AWAITING_CONFIRMATION: {
            PaymentState.CONFIRMED,
            PaymentState.TIMED_OUT,
            PaymentState.FAILED,
        },
        PaymentState.TIMED_OUT: {PaymentState.AWAITING_CONFIRMATION, PaymentState.CONFIRMED},
        PaymentState.CONFIRMED: set(),
        PaymentState.FAILED: set(),
    }

    def __init__(
        self,
        wallet: WalletProvider,
        chain: TransactionLookup,
        fee_calculator: FeeCalculator,
        workflow: WorkflowState,
        recipient: str,
        explorer: Optional[ExplorerClient] = None,
        on_confirmed: Optional[Callable[[PendingTransaction], Awaitable[None]]] = None,
        poll_interval: float = POLL_INTERVAL,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self.wallet = wallet
        self.chain = chain
        self.fee_calculator = fee_calculator
        self.workflow = workflow
        self.recipient = recipient
        self.explorer = explorer
        self.on_confirmed = on_confirmed
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

        self.state = PaymentState.IDLE
        self.pending: Optional[PendingTransaction] = None
        self.confirmed_transaction: Optional[PendingTransaction] = None
        self.last_error: Optional[str] = None
        self._polling: Optional[PollingTask] = None
        self._submission: Optional[CancellationToken] = None

    @property
    def explorer_url(self) -> Optional[str]:
        """Link to the pending transaction, offered when verification times out."""
        if self.pending is None or self.explorer is None:
            return None
        return self.explorer.transaction_url(self.pending.hash)

    @property
    def can_verify_manually(self) -> bool:
        return self.state == PaymentState.TIMED_OUT

    @property
    def polling(self) -> bool:
        return self._polling is not None and self._polling.running

    def _transition(self, target: PaymentState) -> None:
        if target not in self.TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Payment cannot go from {self.state.value} to {target.value}"
            )
        logger.info(f"Payment state: {self.state.value} -> {target.value}")
        self.state = target

    def _fail(self, message: str) -> None:
        self.last_error = message
        self._transition(PaymentState.FAILED)
        logger.error(f"Payment failed: {message}")

    async def submit_payment(self, duration_seconds: int) -> PendingTransaction:
        """
        Quote the fee and send it from the connected account.

        Raises:
            InvalidTransitionError: If a payment is already in progress
            PaymentSubmissionError: If no account is connected or the wallet
                refused the transfer. Never retried.
            PollingCancelledError: If ``reset`` abandoned the attempt while
                the fee was quoted or the wallet was signing
        """
        if self.state != PaymentState.IDLE:
            raise InvalidTransitionError("A payment is already in progress")

        # Fail fast without touching the state machine
        if not self.wallet.accounts:
            raise PaymentSubmissionError("No accounts available")

        token = CancellationToken()
        self._submission = token
        self._transition(PaymentState.SUBMITTING)
        quote = await self.fee_calculator.quote(duration_seconds)
        if token.cancelled:
            raise PollingCancelledError("Payment was abandoned before it was sent")

        try:
            value_wei = Web3.to_wei(Decimal(quote.amount), "ether")
            tx_hash = await self.wallet.send_transaction(self.recipient, value_wei)
        except Exception as e:
            if token.cancelled:
                raise PollingCancelledError("Payment was abandoned") from e
            if isinstance(e, PaymentSubmissionError):
                self._fail(str(e))
                raise
            logger.error(f"Payment error: {str(e)}\n{format_exc()}")
            self._fail(str(e))
            raise PaymentSubmissionError(f"Failed to send payment: {str(e)}") from e

        if token.cancelled:
            logger.warning(f"Transaction {tx_hash} was sent after the payment was abandoned")
            raise PollingCancelledError("Payment was abandoned")

        self._submission = None
        logger.info(f"Transaction sent: {tx_hash} ({quote.amount})")
        self.pending = PendingTransaction(hash=tx_hash, amount=quote.amount, price=quote.price)
        self._transition(PaymentState.AWAITING_CONFIRMATION)
        return self.pending

    async def _poll_confirmation(self, attempt: int) -> Optional[PendingTransaction]:
        pending = self.pending
        try:
            await verify_payment(
                self.chain,
                pending.hash,
                self.recipient,
                expected_amount=pending.amount,
                explorer=self.explorer,
            )
        except WorkflowError as e:
            if not e.retryable:
                raise
            logger.info(
                f"Verification attempt {attempt}/{self.max_attempts} for {pending.hash}: {str(e)}"
            )
            return None
        return pending

    async def await_confirmation(self) -> PaymentState:
        """
        Poll the chain until the pending transaction is confirmed.

        Returns:
            CONFIRMED, or TIMED_OUT when every attempt found the transaction
            still pending. A cancelled poll leaves the state untouched.

        Raises:
            PaymentValidationError: If the transaction is invalid (state FAILED)
        """
        if self.state != PaymentState.AWAITING_CONFIRMATION or self.pending is None:
            raise InvalidTransitionError("No transaction is awaiting confirmation")
        if self.polling:
            raise InvalidTransitionError("Confirmation is already being polled")

        polling = PollingTask(
            self._poll_confirmation,
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
            name=f"payment-{self.pending.hash[:10]}",
        )
        self._polling = polling
        try:
            await polling.wait()
        except PollingCancelledError:
            return self.state
        except WorkflowError as e:
            if polling.token.cancelled:
                # Verification that was in flight when the user moved on
                logger.info(f"Dropping result of cancelled verification: {str(e)}")
                return self.state
            if isinstance(e, PollingExhaustedError):
                return self._time_out()
            self._fail(str(e))
            raise

        await self._confirm()
        return self.state

    def _time_out(self) -> PaymentState:
        self.last_error = (
            "Payment not confirmed yet. Check the transaction on the explorer, "
            "then verify again or continue manually."
        )
        self._transition(PaymentState.TIMED_OUT)
        logger.warning(
            f"Verification of {self.pending.hash} timed out after "
            f"{self.max_attempts} attempts: {self.explorer_url}"
        )
        return self.state

    async def pay(self, duration_seconds: int) -> PaymentState:
        """
        Submit the fee and wait for its confirmation.

        Returns the current state untouched when ``reset`` abandoned the
        attempt before the transfer was sent.
        """
        try:
            await self.submit_payment(duration_seconds)
        except PollingCancelledError as e:
            logger.info(f"Payment attempt dropped: {str(e)}")
            return self.state
        return await self.await_confirmation()

    async def reverify(self) -> PaymentState:
        """Manual verify: poll the stored transaction again after a timeout."""
        if self.state == PaymentState.TIMED_OUT:
            self._transition(PaymentState.AWAITING_CONFIRMATION)
        return await self.await_confirmation()

    async def confirm_manually(self) -> None:
        """'I've verified, continue': accept a timed out payment."""
        if self.state != PaymentState.TIMED_OUT:
            raise InvalidTransitionError("Manual confirmation is only possible after a timeout")
        logger.warning(f"Payment {self.pending.hash} confirmed manually by the user")
        await self._confirm()

    async def _confirm(self) -> None:
        self._transition(PaymentState.CONFIRMED)
        self.confirmed_transaction = self.pending
        self.pending = None
        self.last_error = None
        self.workflow.complete_payment()
        logger.info(f"Payment {self.confirmed_transaction.hash} confirmed")

        if self.on_confirmed is not None:
            await self.on_confirmed(self.confirmed_transaction)

    def cancel(self) -> None:
        """Stop confirmation polling, e.g. when the user leaves the payment step."""
        if self._polling is not None:
            self._polling.cancel()

    def reset(self) -> None:
        """
        Back to idle for a new payment attempt.

        A submission still waiting on the wallet is abandoned: it will not
        touch this orchestrator once the wallet returns.
        """
        if self._submission is not None:
            self._submission.cancel()
            self._submission = None
        self.cancel()
        self._polling = None
        self.pending = None
        self.last_error = None
        self.state = PaymentState.IDLE
