"""
Accessors for the governance contract and for proposal payload contracts.
"""

import logging

from ..models import Ballot, ProposalConfiguration, ProposalRecord, ProposalState
from ..utils.abi_codec import (
    encode_uint,
    function_selector,
    parse_address,
    parse_dynamic_string,
    parse_optional_address,
    parse_uint,
    parse_uint256_as_fixed_point,
)
from .base import ContractAccessor

# Get logger for this module
logger = logging.getLogger(__name__)

TOKEN_DECIMALS = 18
# quorum and requiredYeaMargin are fractions scaled by 1e18; 1e16 gives percent
PERCENT_DECIMALS = 16

# getProposal(uint256) returns a static tuple, so every field sits in its own
# 32-byte slot with no head pointer. Byte offsets:
PROPOSAL_LAYOUT = {
    "lock_delay": 0,
    "lock_amount": 32,
    "voting_delay": 64,
    "voting_duration": 96,
    "execution_delay": 128,
    "grace_period": 160,
    "quorum": 192,
    "required_yea_margin": 224,
    "minimum_votes": 256,
    "state": 288,
    "payload": 320,
    "proposer": 352,
    "creation": 384,
    "yea": 416,
    "nay": 448,
}
PROPOSAL_SIZE = 480


def _state_from_uint(value: int) -> ProposalState:
    try:
        return ProposalState(value)
    except ValueError:
        logger.warning(f"Unknown proposal state {value}, treating as Pending")
        return ProposalState.PENDING


def decode_proposal(proposal_id: int, hex_data: str) -> ProposalRecord:
    """
    Decode ``getProposal(uint256)`` return data into a ProposalRecord.

    Durations and the creation timestamp are read as plain integers; quorum and
    margin become percentages; vote amounts and minimum votes are token units.
    """
    offsets = PROPOSAL_LAYOUT
    config = ProposalConfiguration(
        voting_delay=parse_uint(hex_data, offsets["voting_delay"]),
        voting_duration=parse_uint(hex_data, offsets["voting_duration"]),
        execution_delay=parse_uint(hex_data, offsets["execution_delay"]),
        grace_period=parse_uint(hex_data, offsets["grace_period"]),
        quorum_percent=parse_uint256_as_fixed_point(
            hex_data, offsets["quorum"], decimals=PERCENT_DECIMALS
        ),
        yea_margin_percent=parse_uint256_as_fixed_point(
            hex_data, offsets["required_yea_margin"], decimals=PERCENT_DECIMALS
        ),
        minimum_votes=parse_uint256_as_fixed_point(
            hex_data, offsets["minimum_votes"], decimals=TOKEN_DECIMALS
        ),
    )
    ballot = Ballot(
        yea=parse_uint256_as_fixed_point(hex_data, offsets["yea"], decimals=TOKEN_DECIMALS),
        nay=parse_uint256_as_fixed_point(hex_data, offsets["nay"], decimals=TOKEN_DECIMALS),
    )
    return ProposalRecord(
        proposal_id=proposal_id,
        state=_state_from_uint(parse_uint(hex_data, offsets["state"], width=1)),
        config=config,
        payload_address=parse_address(hex_data, offsets["payload"]),
        proposer_address=parse_address(hex_data, offsets["proposer"]),
        creation=parse_uint(hex_data, offsets["creation"]),
        ballot=ballot,
    )


class Governance(ContractAccessor):
    """Reads proposal counts, voting power and proposals."""

    class Selectors:
        PROPOSAL_COUNT = "0xda35c664"  # proposalCount()
        TOTAL_POWER_NOW = "0x7f514e78"  # totalPowerNow()
        TOTAL_POWER_AT = function_selector("totalPowerAt(uint256)")
        GET_PROPOSAL = function_selector("getProposal(uint256)")
        GET_PROPOSAL_STATE = function_selector("getProposalState(uint256)")

    async def get_proposal_count(self) -> int:
        result = await self._call(self.Selectors.PROPOSAL_COUNT)
        return parse_uint(result)

    async def get_total_power_now(self) -> float:
        result = await self._call(self.Selectors.TOTAL_POWER_NOW)
        return parse_uint256_as_fixed_point(result, decimals=TOKEN_DECIMALS)

    async def get_total_power_at(self, timestamp: int) -> float:
        result = await self._call(self.Selectors.TOTAL_POWER_AT, encode_uint(timestamp))
        return parse_uint256_as_fixed_point(result, decimals=TOKEN_DECIMALS)

    async def get_proposal(self, proposal_id: int) -> ProposalRecord:
        result = await self._call(self.Selectors.GET_PROPOSAL, encode_uint(proposal_id))
        return decode_proposal(proposal_id, result)

    async def get_proposal_state(self, proposal_id: int) -> ProposalState:
        """Live state; the state stored inside the proposal may be stale."""
        result = await self._call(self.Selectors.GET_PROPOSAL_STATE, encode_uint(proposal_id))
        return _state_from_uint(parse_uint(result, width=1))


class ProposalPayload(ContractAccessor):
    """
    Reads the auxiliary metadata exposed by a proposal's payload contract.

    Payloads that wrap another payload expose the wrapped address and an
    off-chain URI describing the change. Plain payloads revert on both.
    """

    class Selectors:
        GET_ORIGINAL_PAYLOAD = function_selector("getOriginalPayload()")
        GET_URI = function_selector("getURI()")

    async def get_original_payload(self) -> str | None:
        result = await self._call(self.Selectors.GET_ORIGINAL_PAYLOAD)
        return parse_optional_address(result)

    async def get_uri(self) -> str | None:
        result = await self._call(self.Selectors.GET_URI)
        return parse_dynamic_string(result)
