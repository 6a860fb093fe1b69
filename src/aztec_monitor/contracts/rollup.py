"""
Accessor for the rollup instance contract.
"""

from ..utils.abi_codec import (
    encode_uint,
    parse_uint,
    parse_uint256_as_fixed_point,
    strip_hex_prefix,
)
from .base import ContractAccessor

TOKEN_DECIMALS = 18

# Byte offset of the slot number inside getBlock() return data
BLOCK_SLOT_OFFSET = 160


def parse_slot_from_block_data(block_data: str) -> int | None:
    """
    Extract the slot number from raw ``getBlock`` return data.

    Returns:
        Slot number, or None when the data is too short or not hex
    """
    cleaned = strip_hex_prefix(block_data or "")
    start = BLOCK_SLOT_OFFSET * 2
    if len(cleaned) < start + 64:
        return None
    try:
        return int(cleaned[start:start + 64], 16)
    except ValueError:
        return None


class Rollup(ContractAccessor):
    """Reads slot, block and staking parameters from the rollup."""

    class Selectors:
        GET_CURRENT_SLOT = "0xd8e3784c"
        GET_PENDING_BLOCK_NUMBER = "0x48b9e57b"
        GET_PROVEN_BLOCK_NUMBER = "0xb67d057b"
        GET_TARGET_COMMITTEE_SIZE = "0x7de3ca89"
        GET_BLOCK_REWARD = "0xf89d4086"
        GET_BLOCK = "0x04c07569"
        GET_ENTRY_QUEUE_LENGTH = "0x1b56a0e7"
        GET_GENESIS_TIME = "0x723d8e96"
        GET_SLOT_DURATION = "0xc4014c12"
        GET_ACTIVATION_THRESHOLD = "0xaa10df4c"
        GET_EPOCH_DURATION = "0x5d3ea8f1"
        GET_ENTRY_QUEUE_FLUSH_SIZE = "0x10073ff0"

    async def _uint(self, selector: str) -> int:
        return parse_uint(await self._call(selector))

    async def get_current_slot(self) -> int:
        return await self._uint(self.Selectors.GET_CURRENT_SLOT)

    async def get_pending_block_number(self) -> int:
        return await self._uint(self.Selectors.GET_PENDING_BLOCK_NUMBER)

    async def get_proven_block_number(self) -> int:
        return await self._uint(self.Selectors.GET_PROVEN_BLOCK_NUMBER)

    async def get_target_committee_size(self) -> int:
        return await self._uint(self.Selectors.GET_TARGET_COMMITTEE_SIZE)

    async def get_block_reward(self) -> float:
        result = await self._call(self.Selectors.GET_BLOCK_REWARD)
        return parse_uint256_as_fixed_point(result, decimals=TOKEN_DECIMALS)

    async def get_block(self, block_number: int) -> str:
        """Raw ``getBlock`` return data; see :func:`parse_slot_from_block_data`."""
        return await self._call(self.Selectors.GET_BLOCK, encode_uint(block_number))

    async def get_block_slot(self, block_number: int) -> int | None:
        return parse_slot_from_block_data(await self.get_block(block_number))

    async def get_entry_queue_length(self) -> int:
        return await self._uint(self.Selectors.GET_ENTRY_QUEUE_LENGTH)

    async def get_genesis_time(self) -> int:
        return await self._uint(self.Selectors.GET_GENESIS_TIME)

    async def get_slot_duration(self) -> int:
        return await self._uint(self.Selectors.GET_SLOT_DURATION)

    async def get_activation_threshold(self) -> float:
        result = await self._call(self.Selectors.GET_ACTIVATION_THRESHOLD)
        return parse_uint256_as_fixed_point(result, decimals=TOKEN_DECIMALS)

    async def get_epoch_duration(self) -> int:
        return await self._uint(self.Selectors.GET_EPOCH_DURATION)

    async def get_entry_queue_flush_size(self) -> int:
        return await self._uint(self.Selectors.GET_ENTRY_QUEUE_FLUSH_SIZE)
