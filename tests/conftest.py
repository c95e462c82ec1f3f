import pytest

from app.models.shared import WorkflowStep
from app.models.videos import GenerateVideoRequest
from app.orchestration.pricing import FeeCalculator, FlatRatePricing
from app.orchestration.workflow import WorkflowState
from tests.fakes import SENDER, FakePriceOracle


@pytest.fixture
def params() -> GenerateVideoRequest:
    return GenerateVideoRequest(
        prompt="A fox running through snow",
        aspect_ratio="16:9",
        generation_type="text",
        duration_seconds=5,
    )


@pytest.fixture
def workflow(params) -> WorkflowState:
    """Workflow waiting at the payment step."""
    state = WorkflowState()
    state.connect_wallet([SENDER])
    state.set_generation_params(params)
    state.set_step(WorkflowStep.PAYMENT)
    return state


@pytest.fixture
def fee_calculator() -> FeeCalculator:
    return FeeCalculator(
        price_oracle=FakePriceOracle(2.0),
        strategy=FlatRatePricing(0.5),
        token="lyx",
        default_amount="0.5",
    )
