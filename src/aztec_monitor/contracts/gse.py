"""
Accessor for the GSE stake registry.
"""

from ..utils.abi_codec import (
    encode_address,
    encode_uint,
    parse_address,
    parse_optional_address,
    parse_uint,
    parse_uint256_as_fixed_point,
)
from .base import ContractAccessor

TOKEN_DECIMALS = 18


class GSE(ContractAccessor):
    """Reads stake supply and attester counts per rollup instance."""

    class Selectors:
        BONUS_INSTANCE_ADDRESS = "0x710ca354"  # BONUS_INSTANCE_ADDRESS()
        TOTAL_SUPPLY = "0x18160ddd"  # totalSupply()
        SUPPLY_OF = "0x62400e4c"  # supplyOf(address)
        GET_ATTESTER_COUNT_AT_TIME = "0xec6e69db"  # getAttesterCountAtTime(address,uint256)
        GET_LATEST_ROLLUP = "0xb35186a8"  # getLatestRollup()

    async def get_bonus_instance_address(self) -> str | None:
        """Bonus instance address, None while unset."""
        result = await self._call(self.Selectors.BONUS_INSTANCE_ADDRESS)
        return parse_optional_address(result)

    async def get_total_supply(self) -> float:
        result = await self._call(self.Selectors.TOTAL_SUPPLY)
        return parse_uint256_as_fixed_point(result, decimals=TOKEN_DECIMALS)

    async def get_supply_of(self, instance: str) -> float:
        """Direct stake of ``instance``; never includes the bonus pool."""
        result = await self._call(self.Selectors.SUPPLY_OF, encode_address(instance))
        return parse_uint256_as_fixed_point(result, decimals=TOKEN_DECIMALS)

    async def get_attester_count_at_time(self, instance: str, timestamp: int) -> int:
        """Attesters of ``instance``; includes bonus attesters for the canonical rollup."""
        result = await self._call(
            self.Selectors.GET_ATTESTER_COUNT_AT_TIME,
            encode_address(instance),
            encode_uint(timestamp),
        )
        return parse_uint(result)

    async def get_latest_rollup(self) -> str:
        result = await self._call(self.Selectors.GET_LATEST_ROLLUP)
        return parse_address(result)
