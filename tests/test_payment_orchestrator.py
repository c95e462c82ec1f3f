import asyncio

import pytest
from web3 import Web3

from app.errors import (
    InvalidTransitionError,
    PaymentSubmissionError,
    PaymentValidationError,
    TransactionPendingError,
)
from app.models.shared import PaymentState
from app.orchestration.payment import PaymentOrchestrator, verify_payment
from tests.fakes import RECIPIENT, TX_HASH, FakeChain, FakeExplorer, FakeWallet

INTERVAL = 0.001


def make_orchestrator(workflow, fee_calculator, chain, wallet=None, **kwargs):
    kwargs.setdefault("poll_interval", INTERVAL)
    return PaymentOrchestrator(
        wallet=wallet or FakeWallet(),
        chain=chain,
        fee_calculator=fee_calculator,
        workflow=workflow,
        recipient=RECIPIENT,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_valid_payment_is_confirmed(workflow, fee_calculator):
    confirmed = []

    async def on_confirmed(transaction):
        confirmed.append(transaction)

    wallet = FakeWallet()
    orchestrator = make_orchestrator(
        workflow, fee_calculator, FakeChain(amount="0.25"), wallet=wallet, on_confirmed=on_confirmed
    )

    state = await orchestrator.pay(5)

    assert state == PaymentState.CONFIRMED
    assert workflow.payment_complete
    assert wallet.sent == [(RECIPIENT, Web3.to_wei("0.25", "ether"))]
    assert [t.hash for t in confirmed] == [TX_HASH]
    assert confirmed[0].amount == "0.25"
    assert orchestrator.pending is None


@pytest.mark.asyncio
async def test_pending_transaction_is_polled_until_confirmed(workflow, fee_calculator):
    chain = FakeChain(pending_polls=3)
    orchestrator = make_orchestrator(workflow, fee_calculator, chain)

    state = await orchestrator.pay(5)

    assert state == PaymentState.CONFIRMED
    assert chain.receipt_calls == 4


@pytest.mark.asyncio
async def test_unreachable_rpc_is_retried(workflow, fee_calculator):
    chain = FakeChain()
    chain.unreachable = True
    orchestrator = make_orchestrator(workflow, fee_calculator, chain, max_attempts=3)

    state = await orchestrator.pay(5)

    assert state == PaymentState.TIMED_OUT
    assert chain.receipt_calls == 3


@pytest.mark.asyncio
async def test_recipient_mismatch_fails_even_with_correct_amount(workflow, fee_calculator):
    chain = FakeChain(to="0x2222222222222222222222222222222222222222", amount="0.25")
    orchestrator = make_orchestrator(workflow, fee_calculator, chain)

    with pytest.raises(PaymentValidationError, match="Incorrect payment recipient"):
        await orchestrator.pay(5)

    assert orchestrator.state == PaymentState.FAILED
    assert not workflow.payment_complete
    assert chain.receipt_calls == 1


@pytest.mark.asyncio
async def test_reverted_transaction_fails(workflow, fee_calculator):
    orchestrator = make_orchestrator(workflow, fee_calculator, FakeChain(success=False))

    with pytest.raises(PaymentValidationError, match="Transaction failed"):
        await orchestrator.pay(5)
    assert orchestrator.state == PaymentState.FAILED


@pytest.mark.asyncio
async def test_exhausted_polling_offers_manual_verification(workflow, fee_calculator):
    chain = FakeChain(pending_polls=1000)
    orchestrator = make_orchestrator(
        workflow,
        fee_calculator,
        chain,
        explorer=FakeExplorer(exists=False),
        max_attempts=24,
    )

    state = await orchestrator.pay(5)

    assert state == PaymentState.TIMED_OUT
    assert chain.receipt_calls == 24
    assert orchestrator.can_verify_manually
    assert orchestrator.explorer_url == f"https://explorer.example/tx/{TX_HASH}"
    assert orchestrator.last_error
    assert not workflow.payment_complete


@pytest.mark.asyncio
async def test_reverify_after_timeout_confirms(workflow, fee_calculator):
    chain = FakeChain(pending_polls=2)
    orchestrator = make_orchestrator(workflow, fee_calculator, chain, max_attempts=2)

    assert await orchestrator.pay(5) == PaymentState.TIMED_OUT
    assert await orchestrator.reverify() == PaymentState.CONFIRMED
    assert workflow.payment_complete


@pytest.mark.asyncio
async def test_manual_confirmation_only_after_timeout(workflow, fee_calculator):
    orchestrator = make_orchestrator(
        workflow, fee_calculator, FakeChain(pending_polls=1000), max_attempts=1
    )

    with pytest.raises(InvalidTransitionError):
        await orchestrator.confirm_manually()

    await orchestrator.pay(5)
    await orchestrator.confirm_manually()

    assert orchestrator.state == PaymentState.CONFIRMED
    assert workflow.payment_complete


@pytest.mark.asyncio
async def test_no_account_fails_fast(workflow, fee_calculator):
    wallet = FakeWallet(accounts=[])
    orchestrator = make_orchestrator(workflow, fee_calculator, FakeChain(), wallet=wallet)

    with pytest.raises(PaymentSubmissionError, match="No accounts available"):
        await orchestrator.pay(5)

    assert orchestrator.state == PaymentState.IDLE
    assert wallet.sent == []


@pytest.mark.asyncio
async def test_rejected_transfer_fails(workflow, fee_calculator):
    wallet = FakeWallet()
    wallet.error = RuntimeError("User rejected the request")
    orchestrator = make_orchestrator(workflow, fee_calculator, FakeChain(), wallet=wallet)

    with pytest.raises(PaymentSubmissionError, match="User rejected"):
        await orchestrator.pay(5)
    assert orchestrator.state == PaymentState.FAILED


@pytest.mark.asyncio
async def test_second_payment_while_pending_is_rejected(workflow, fee_calculator):
    orchestrator = make_orchestrator(workflow, fee_calculator, FakeChain())
    await orchestrator.submit_payment(5)

    with pytest.raises(InvalidTransitionError):
        await orchestrator.submit_payment(5)


@pytest.mark.asyncio
async def test_reset_returns_to_idle(workflow, fee_calculator):
    orchestrator = make_orchestrator(
        workflow, fee_calculator, FakeChain(to="0x2222222222222222222222222222222222222222")
    )
    with pytest.raises(PaymentValidationError):
        await orchestrator.pay(5)

    orchestrator.reset()

    assert orchestrator.state == PaymentState.IDLE
    assert orchestrator.pending is None


@pytest.mark.asyncio
@pytest.mark.parametrize("paid", ["0.25", "0.26", "0.24", "0.255"])
async def test_amount_within_tolerance_is_accepted(paid):
    chain = FakeChain(amount=paid)

    assert await verify_payment(chain, TX_HASH, RECIPIENT, expected_amount="0.25")


@pytest.mark.asyncio
@pytest.mark.parametrize("paid", ["0.2", "0.27", "0.5"])
async def test_amount_outside_tolerance_is_rejected(paid):
    chain = FakeChain(amount=paid)

    with pytest.raises(PaymentValidationError, match="Incorrect payment amount"):
        await verify_payment(chain, TX_HASH, RECIPIENT, expected_amount="0.25")


@pytest.mark.asyncio
async def test_recipient_comparison_ignores_case():
    chain = FakeChain(to=RECIPIENT.lower())

    assert await verify_payment(chain, TX_HASH, RECIPIENT.upper().replace("0X", "0x"))


@pytest.mark.asyncio
async def test_explorer_hit_does_not_skip_validation():
    chain = FakeChain(to="0x2222222222222222222222222222222222222222")

    with pytest.raises(PaymentValidationError):
        await verify_payment(chain, TX_HASH, RECIPIENT, explorer=FakeExplorer(exists=True))


@pytest.mark.asyncio
async def test_unreachable_explorer_falls_back_to_rpc():
    chain = FakeChain()

    assert await verify_payment(
        chain, TX_HASH, RECIPIENT, explorer=FakeExplorer(unreachable=True)
    )


@pytest.mark.asyncio
async def test_missing_receipt_is_pending():
    chain = FakeChain(pending_polls=1)

    with pytest.raises(TransactionPendingError) as exc_info:
        await verify_payment(chain, TX_HASH, RECIPIENT)
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_missing_recipient_is_rejected():
    chain = FakeChain(to=None)

    with pytest.raises(PaymentValidationError, match="recipient is missing"):
        await verify_payment(chain, TX_HASH, RECIPIENT)


@pytest.mark.asyncio
async def test_verification_in_flight_during_reset_is_dropped(workflow, fee_calculator):
    chain = FakeChain(to="0x2222222222222222222222222222222222222222")
    chain.gate = asyncio.Event()
    orchestrator = make_orchestrator(workflow, fee_calculator, chain)
    await orchestrator.submit_payment(5)

    waiter = asyncio.create_task(orchestrator.await_confirmation())
    await asyncio.sleep(0.01)
    assert chain.receipt_calls == 1

    orchestrator.reset()
    chain.gate.set()

    assert await asyncio.wait_for(waiter, timeout=1) == PaymentState.IDLE
    assert orchestrator.state == PaymentState.IDLE
    assert orchestrator.last_error is None
    assert not workflow.payment_complete


@pytest.mark.asyncio
async def test_reset_while_wallet_is_signing_abandons_the_attempt(workflow, fee_calculator):
    confirmed = []

    async def on_confirmed(transaction):
        confirmed.append(transaction)

    wallet = FakeWallet()
    wallet.gate = asyncio.Event()
    orchestrator = make_orchestrator(
        workflow, fee_calculator, FakeChain(), wallet=wallet, on_confirmed=on_confirmed
    )

    payment = asyncio.create_task(orchestrator.pay(5))
    await asyncio.sleep(0.01)
    assert orchestrator.state == PaymentState.SUBMITTING

    orchestrator.reset()
    assert orchestrator.state == PaymentState.IDLE
    wallet.gate.set()

    assert await asyncio.wait_for(payment, timeout=1) == PaymentState.IDLE
    assert orchestrator.pending is None
    assert confirmed == []
    assert not workflow.payment_complete
