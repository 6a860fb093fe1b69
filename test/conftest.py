"""Shared fixtures and helpers for the monitor test suite."""

import pytest

from aztec_monitor.config import ContractsConfig, MonitorConfig, MonitoringConfig
from aztec_monitor.errors import RPCFailure

PROPOSER_ADDRESS = "0x06ef1dcf87e419c48b94a331b252819fadbd63ef"
ROLLUP_ADDRESS = "0x603bb2c05d474794ea97805e8de69bccfb3bca12"
GOVERNANCE_ADDRESS = "0x1111111111111111111111111111111111111111"
GSE_ADDRESS = "0x2222222222222222222222222222222222222222"
PAYLOAD_ADDRESS = "0x9897000000000000000000000000000000009897"


def word(value: int) -> str:
    """One ABI slot holding ``value``."""
    return format(value, "064x")


def address_word(address: str) -> str:
    return address.lower().removeprefix("0x").rjust(64, "0")


def result(*slots: str) -> str:
    return "0x" + "".join(slots)


class FakeChainClient:
    """
    Stand-in for EthRpcClient that answers eth_call from a lookup table.

    Responses are registered per (contract, call data) and may be exceptions.
    Unregistered calls revert, the way a contract without the function would.
    """

    def __init__(self, block_number: int = 1_000) -> None:
        self.block_number = block_number
        self.responses: dict[tuple[str, str], str | Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def respond(self, to: str, selector: str, *arg_slots: str, value: str | Exception) -> None:
        data = selector + "".join(arg_slots)
        self.responses[(to.lower(), data.lower())] = value

    async def call(self, to: str, data: str) -> str:
        self.calls.append((to, data))
        response = self.responses.get((to.lower(), data.lower()))
        if response is None:
            raise RPCFailure(3, "execution reverted")
        if isinstance(response, Exception):
            raise response
        return response

    async def get_block_number(self) -> int:
        return self.block_number

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client():
    return FakeChainClient()


@pytest.fixture
def base_config():
    """Config with only the mandatory contracts and a small round window."""
    return MonitorConfig(
        contracts=ContractsConfig(
            governance_proposer_address=PROPOSER_ADDRESS,
            rollup_address=ROLLUP_ADDRESS,
        ),
        monitoring=MonitoringConfig(round_window=2, block_sample_size=4),
    )


@pytest.fixture
def full_config():
    """Config with every optional contract configured."""
    return MonitorConfig(
        contracts=ContractsConfig(
            governance_proposer_address=PROPOSER_ADDRESS,
            rollup_address=ROLLUP_ADDRESS,
            governance_address=GOVERNANCE_ADDRESS,
            gse_address=GSE_ADDRESS,
        ),
        monitoring=MonitoringConfig(round_window=2, proposal_window=2, block_sample_size=4),
    )
