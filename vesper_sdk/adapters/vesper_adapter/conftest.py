import pytest

from vesper_sdk.adapters.vesper_adapter.metadata import load_metadata
from vesper_sdk.adapters.vesper_adapter.oracle import UniswapRateOracle
from vesper_sdk.adapters.vesper_adapter.registry import ContractRegistry
from vesper_sdk.testing.fakes import METADATA, ROUTER, FakeChain


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def metadata():
    return load_metadata(METADATA)


@pytest.fixture
def registry(chain, metadata) -> ContractRegistry:
    return ContractRegistry(chain.web3, metadata, stages=["prod"], chain_id=1)


@pytest.fixture
def oracle(chain, metadata) -> UniswapRateOracle:
    return UniswapRateOracle(chain.web3, metadata.for_chain(1), ROUTER)
