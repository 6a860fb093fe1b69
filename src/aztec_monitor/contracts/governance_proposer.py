"""
Accessor for the governance proposer (round signalling) contract.
"""

from typing import NamedTuple

from ..utils.abi_codec import (
    encode_address,
    encode_uint,
    parse_bool,
    parse_optional_address,
    parse_uint,
)
from .base import ContractAccessor


class RoundData(NamedTuple):
    """Decoded ``getRoundData`` result."""
    slot: int
    payload: str | None
    executed: bool


def decode_round_data(hex_data: str) -> RoundData:
    """
    Decode ``getRoundData(address,uint256)`` return data.

    Layout (one 32-byte slot each):
        0:  uint32 lastSignalSlot
        32: address payload (zero address -> None)
        64: bool executed
    """
    return RoundData(
        slot=parse_uint(hex_data, 0, width=4),
        payload=parse_optional_address(hex_data, 32),
        executed=parse_bool(hex_data, 64),
    )


class GovernanceProposer(ContractAccessor):
    """Reads rounds, signals and quorum parameters from the proposer contract."""

    class Selectors:
        GET_CURRENT_ROUND = "0xa32bf597"  # getCurrentRound()
        GET_ROUND_DATA = "0x16af8be1"  # getRoundData(address,uint256)
        SIGNAL_COUNT = "0x11739538"  # signalCount(address,uint256,address)
        QUORUM_SIZE = "0x5cb165a0"  # QUORUM_SIZE()
        ROUND_SIZE = "0x54133307"  # ROUND_SIZE()

    async def get_current_round(self) -> int:
        result = await self._call(self.Selectors.GET_CURRENT_ROUND)
        return parse_uint(result)

    async def get_round_data(self, instance: str, round_number: int) -> RoundData:
        result = await self._call(
            self.Selectors.GET_ROUND_DATA,
            encode_address(instance),
            encode_uint(round_number),
        )
        return decode_round_data(result)

    async def get_signal_count(self, instance: str, round_number: int, payload: str) -> int:
        result = await self._call(
            self.Selectors.SIGNAL_COUNT,
            encode_address(instance),
            encode_uint(round_number),
            encode_address(payload),
        )
        return parse_uint(result)

    async def get_quorum_size(self) -> int:
        result = await self._call(self.Selectors.QUORUM_SIZE)
        return parse_uint(result)

    async def get_round_size(self) -> int:
        result = await self._call(self.Selectors.ROUND_SIZE)
        return parse_uint(result)
