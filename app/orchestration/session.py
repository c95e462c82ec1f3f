"""
Workflow Session

Ties the workflow state and both orchestrators together for one user:
connect a wallet, describe the video, pay, wait for the result, then
download it or start over.
"""

import logging
from typing import Any, Dict, Optional, Union

from web3 import Web3

from app.errors import ContentError, InvalidTransitionError
from app.models.content import MetadataStoreRequest, MetadataStoreResponse
from app.models.payments import PendingTransaction
from app.models.shared import PaymentState, WorkflowStep
from app.models.videos import GenerateVideoRequest, Video
from app.orchestration.clients import VideoApiClient
from app.orchestration.generation import GenerationOrchestrator, VideoApi
from app.orchestration.payment import PaymentOrchestrator, TransactionLookup
from app.orchestration.pricing import FeeCalculator, pricing_strategy
from app.orchestration.workflow import WorkflowState
from app.services.chain.explorer import ExplorerClient
from app.services.chain.rpc import ChainClient
from app.services.chain.wallet import LocalAccountWallet, WalletProvider
from config import (
    API_BASE_URL,
    CHAIN_EXPLORER_API_URL,
    CHAIN_EXPLORER_URL,
    CHAIN_ID,
    CHAIN_RPC_URL,
    DEFAULT_PAYMENT_AMOUNT,
    NATIVE_TOKEN,
    PAYMENT_ADDRESS,
    TARGET_USD_AMOUNT,
    USD_PER_SECOND,
    WALLET_PRIVATE_KEY,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class WorkflowSession:
    def __init__(
        self,
        api: Union[VideoApi, VideoApiClient],
        wallet: WalletProvider,
        chain: TransactionLookup,
        fee_calculator: FeeCalculator,
        recipient: str,
        explorer: Optional[ExplorerClient] = None,
        workflow: Optional[WorkflowState] = None,
        payment_poll_interval: float = PaymentOrchestrator.POLL_INTERVAL,
        payment_max_attempts: int = PaymentOrchestrator.MAX_ATTEMPTS,
        generation_poll_interval: float = GenerationOrchestrator.POLL_INTERVAL,
        generation_max_attempts: int = GenerationOrchestrator.MAX_ATTEMPTS,
    ):
        self.api = api
        self.wallet = wallet
        self.workflow = workflow or WorkflowState()
        self.payment = PaymentOrchestrator(
            wallet=wallet,
            chain=chain,
            fee_calculator=fee_calculator,
            workflow=self.workflow,
            recipient=recipient,
            explorer=explorer,
            on_confirmed=self._on_payment_confirmed,
            poll_interval=payment_poll_interval,
            max_attempts=payment_max_attempts,
        )
        self.generation = GenerationOrchestrator(
            api=api,
            workflow=self.workflow,
            poll_interval=generation_poll_interval,
            max_attempts=generation_max_attempts,
        )

    @classmethod
    def from_config(cls) -> "WorkflowSession":
        """Build a session against the configured API, chain and wallet."""
        api = VideoApiClient(API_BASE_URL)
        chain = ChainClient(CHAIN_RPC_URL)
        wallet = LocalAccountWallet(chain.web3, WALLET_PRIVATE_KEY, CHAIN_ID)
        fee_calculator = FeeCalculator(
            price_oracle=api,
            strategy=pricing_strategy(USD_PER_SECOND, TARGET_USD_AMOUNT),
            token=NATIVE_TOKEN,
            default_amount=DEFAULT_PAYMENT_AMOUNT,
        )
        explorer = ExplorerClient(CHAIN_EXPLORER_API_URL, CHAIN_EXPLORER_URL)
        return cls(
            api=api,
            wallet=wallet,
            chain=chain,
            fee_calculator=fee_calculator,
            recipient=Web3.to_checksum_address(PAYMENT_ADDRESS),
            explorer=explorer,
        )

    @property
    def step(self) -> WorkflowStep:
        return self.workflow.step

    def connect_wallet(self) -> None:
        self.workflow.connect_wallet(self.wallet.accounts, self.wallet.context_accounts)
        logger.info(f"Wallet connected: {self.workflow.allowed_accounts[0]}")

    def submit_prompt(
        self, params: Union[GenerateVideoRequest, Dict[str, Any]]
    ) -> GenerateVideoRequest:
        """Validate the generation parameters and move on to payment."""
        if not isinstance(params, GenerateVideoRequest):
            params = GenerateVideoRequest.model_validate(params)
        if params.wallet_address is None and self.workflow.allowed_accounts:
            params = params.model_copy(
                update={"wallet_address": self.workflow.allowed_accounts[0]}
            )

        self.workflow.set_generation_params(params)
        self.workflow.set_step(WorkflowStep.PAYMENT)
        return params

    async def pay(self) -> PaymentState:
        """
        Pay the fee for the current parameters.

        Generation is submitted as soon as the payment is confirmed, so a
        CONFIRMED return means the workflow is already processing.
        """
        if self.workflow.step != WorkflowStep.PAYMENT:
            raise InvalidTransitionError("Submit a prompt before paying")
        return await self.payment.pay(self.workflow.generation_params.duration_seconds)

    async def _on_payment_confirmed(self, transaction: PendingTransaction) -> None:
        logger.info(f"Payment {transaction.hash} confirmed, starting generation")
        await self.generation.start()

    async def reverify_payment(self) -> PaymentState:
        return await self.payment.reverify()

    async def confirm_payment_manually(self) -> None:
        await self.payment.confirm_manually()

    async def wait_for_result(self) -> Video:
        return await self.generation.wait()

    def start_new_video(self) -> None:
        """Back to the prompt step, keeping the wallet connection."""
        self.payment.reset()
        self.generation.reset()
        self.workflow.reset_to_prompt()

    def _require_result(self) -> Video:
        if self.workflow.video_result is None:
            raise ContentError("No video has been generated yet")
        return self.workflow.video_result

    async def download_video(self, path: str) -> str:
        video = self._require_result()
        return await self.api.download_content(video.ipfs_cid, path)

    async def store_metadata(self) -> MetadataStoreResponse:
        video = self._require_result()
        return await self.api.store_metadata(
            MetadataStoreRequest(
                cid=video.ipfs_cid, gateway_url=video.gateway_url, prompt=video.prompt
            )
        )

    def close(self) -> None:
        """Stop every polling loop owned by this session."""
        self.payment.cancel()
        self.generation.cancel()
