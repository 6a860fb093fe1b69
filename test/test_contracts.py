"""Tests for the contract accessors and their fixed decode layouts."""

import pytest
from web3 import Web3

from aztec_monitor.contracts import GSE, Governance, GovernanceProposer, ProposalPayload, Rollup
from aztec_monitor.contracts.governance import PROPOSAL_SIZE, decode_proposal
from aztec_monitor.contracts.governance_proposer import decode_round_data
from aztec_monitor.contracts.rollup import parse_slot_from_block_data
from aztec_monitor.models import ProposalState
from aztec_monitor.utils.abi_codec import encode_uint, function_selector
from conftest import (
    GOVERNANCE_ADDRESS,
    GSE_ADDRESS,
    PAYLOAD_ADDRESS,
    PROPOSER_ADDRESS,
    ROLLUP_ADDRESS,
    FakeChainClient,
    address_word,
    result,
    word,
)

TOKEN = 10**18


def proposal_hex(
    state: int = 1,
    creation: int = 1_700_000_000,
    yea: int = 300 * TOKEN,
    nay: int = 100 * TOKEN,
) -> str:
    return result(
        word(3600),                      # lock delay
        word(50 * TOKEN),                # lock amount
        word(86400),                     # voting delay
        word(3 * 86400),                 # voting duration
        word(7 * 86400),                 # execution delay
        word(7 * 86400),                 # grace period
        word(2 * 10**17),                # quorum, 20%
        word(33 * 10**16),               # required yea margin, 33%
        word(1000 * TOKEN),              # minimum votes
        word(state),
        address_word(PAYLOAD_ADDRESS),
        address_word(GOVERNANCE_ADDRESS),
        word(creation),
        word(yea),
        word(nay),
    )


class TestRoundDataDecoding:
    """Fixed vectors for getRoundData."""

    def test_slot_payload_executed(self):
        data = result(word(180), address_word(ROLLUP_ADDRESS), word(0))
        decoded = decode_round_data(data)
        assert decoded.slot == 180
        assert decoded.payload == ROLLUP_ADDRESS
        assert decoded.executed is False

    @pytest.mark.parametrize("slot,executed", [(0, 0), (180, 1), (2**32 - 1, 1)])
    def test_zero_payload_is_absent(self, slot, executed):
        decoded = decode_round_data(result(word(slot), word(0), word(executed)))
        assert decoded.payload is None
        assert decoded.slot == slot
        assert decoded.executed is bool(executed)

    def test_truncated_data_degrades(self):
        decoded = decode_round_data(result(word(7)))
        assert decoded == (7, None, False)


class TestGovernanceProposer:
    """Test suite for the GovernanceProposer accessor."""

    @pytest.mark.asyncio
    async def test_round_data_call_encoding(self):
        client = FakeChainClient()
        proposer = GovernanceProposer(client, PROPOSER_ADDRESS)
        client.respond(
            PROPOSER_ADDRESS, "0x16af8be1", address_word(ROLLUP_ADDRESS), word(39),
            value=result(word(7020), address_word(PAYLOAD_ADDRESS), word(0)),
        )

        data = await proposer.get_round_data(ROLLUP_ADDRESS, 39)

        assert data.slot == 7020
        assert data.payload == PAYLOAD_ADDRESS
        to, call_data = client.calls[0]
        assert to == Web3.to_checksum_address(PROPOSER_ADDRESS)
        assert call_data.startswith("0x16af8be1")
        assert len(call_data) == 10 + 2 * 64

    @pytest.mark.asyncio
    async def test_signal_count_and_sizes(self):
        client = FakeChainClient()
        proposer = GovernanceProposer(client, PROPOSER_ADDRESS)
        client.respond(
            PROPOSER_ADDRESS, "0x11739538",
            address_word(ROLLUP_ADDRESS), word(39), address_word(PAYLOAD_ADDRESS),
            value=result(word(9)),
        )
        client.respond(PROPOSER_ADDRESS, "0x5cb165a0", value=result(word(9)))
        client.respond(PROPOSER_ADDRESS, "0x54133307", value=result(word(180)))
        client.respond(PROPOSER_ADDRESS, "0xa32bf597", value=result(word(39)))

        assert await proposer.get_signal_count(ROLLUP_ADDRESS, 39, PAYLOAD_ADDRESS) == 9
        assert await proposer.get_quorum_size() == 9
        assert await proposer.get_round_size() == 180
        assert await proposer.get_current_round() == 39

    def test_rejects_invalid_address(self):
        with pytest.raises(ValueError):
            GovernanceProposer(FakeChainClient(), "0x1234")


class TestRollup:
    """Test suite for the Rollup accessor."""

    def test_slot_from_block_data(self):
        data = result(word(1), word(2), word(3), word(4), word(5), word(9001), word(6))
        assert parse_slot_from_block_data(data) == 9001

    @pytest.mark.parametrize("data", ["0x", result(word(1)), "0x" + "zz" * 200])
    def test_slot_from_bad_block_data(self, data):
        assert parse_slot_from_block_data(data) is None

    @pytest.mark.asyncio
    async def test_block_slot_and_reward(self):
        client = FakeChainClient()
        rollup = Rollup(client, ROLLUP_ADDRESS)
        client.respond(
            ROLLUP_ADDRESS, "0x04c07569", encode_uint(12),
            value=result(*(word(0) for _ in range(5)), word(4242)),
        )
        client.respond(ROLLUP_ADDRESS, "0xf89d4086", value=result(word(400 * TOKEN)))
        client.respond(ROLLUP_ADDRESS, "0xd8e3784c", value=result(word(7199)))

        assert await rollup.get_block_slot(12) == 4242
        assert await rollup.get_block_reward() == 400.0
        assert await rollup.get_current_slot() == 7199


class TestGSE:
    """Test suite for the GSE accessor."""

    @pytest.mark.asyncio
    async def test_supply_and_attesters(self):
        client = FakeChainClient()
        gse = GSE(client, GSE_ADDRESS)
        client.respond(GSE_ADDRESS, "0x18160ddd", value=result(word(10**24)))
        client.respond(GSE_ADDRESS, "0x710ca354", value=result(word(0)))
        client.respond(GSE_ADDRESS, "0x62400e4c", address_word(ROLLUP_ADDRESS), value=result(word(5 * 10**23)))
        client.respond(
            GSE_ADDRESS, "0xec6e69db", address_word(ROLLUP_ADDRESS), word(1_700_000_000),
            value=result(word(1078)),
        )
        client.respond(GSE_ADDRESS, "0xb35186a8", value=result(address_word(ROLLUP_ADDRESS)))

        assert await gse.get_total_supply() == 1_000_000.0
        assert await gse.get_bonus_instance_address() is None
        assert await gse.get_supply_of(ROLLUP_ADDRESS) == 500_000.0
        assert await gse.get_attester_count_at_time(ROLLUP_ADDRESS, 1_700_000_000) == 1078
        assert await gse.get_latest_rollup() == ROLLUP_ADDRESS


class TestGovernance:
    """Test suite for the Governance accessor and proposal layout."""

    def test_proposal_layout_size(self):
        assert len(proposal_hex()) == 2 + PROPOSAL_SIZE * 2

    def test_decode_proposal(self):
        proposal = decode_proposal(4, proposal_hex())

        assert proposal.proposal_id == 4
        assert proposal.state == ProposalState.ACTIVE
        assert proposal.config.voting_delay == 86400
        assert proposal.config.voting_duration == 3 * 86400
        assert proposal.config.quorum_percent == pytest.approx(20.0)
        assert proposal.config.yea_margin_percent == pytest.approx(33.0)
        assert proposal.config.minimum_votes == pytest.approx(1000.0)
        assert proposal.payload_address == PAYLOAD_ADDRESS
        assert proposal.proposer_address == GOVERNANCE_ADDRESS
        assert proposal.creation == 1_700_000_000
        assert proposal.ballot.yea == pytest.approx(300.0)
        assert proposal.ballot.nay == pytest.approx(100.0)

    def test_unknown_state_falls_back_to_pending(self):
        assert decode_proposal(0, proposal_hex(state=42)).state == ProposalState.PENDING

    def test_computed_selectors(self):
        assert Governance.Selectors.GET_PROPOSAL == function_selector("getProposal(uint256)")
        assert len(Governance.Selectors.TOTAL_POWER_AT) == 10

    @pytest.mark.asyncio
    async def test_reads(self):
        client = FakeChainClient()
        governance = Governance(client, GOVERNANCE_ADDRESS)
        client.respond(GOVERNANCE_ADDRESS, "0xda35c664", value=result(word(5)))
        client.respond(GOVERNANCE_ADDRESS, "0x7f514e78", value=result(word(2500 * TOKEN)))
        client.respond(
            GOVERNANCE_ADDRESS, Governance.Selectors.GET_PROPOSAL, encode_uint(4), value=proposal_hex()
        )
        client.respond(
            GOVERNANCE_ADDRESS, Governance.Selectors.GET_PROPOSAL_STATE, encode_uint(4),
            value=result(word(int(ProposalState.QUEUED))),
        )
        client.respond(
            GOVERNANCE_ADDRESS, Governance.Selectors.TOTAL_POWER_AT, encode_uint(1_700_086_400),
            value=result(word(2000 * TOKEN)),
        )

        assert await governance.get_proposal_count() == 5
        assert await governance.get_total_power_now() == 2500.0
        assert (await governance.get_proposal(4)).creation == 1_700_000_000
        assert await governance.get_proposal_state(4) == ProposalState.QUEUED
        assert await governance.get_total_power_at(1_700_086_400) == 2000.0


class TestProposalPayload:
    """Test suite for the payload metadata accessor."""

    @pytest.mark.asyncio
    async def test_original_payload_and_uri(self):
        client = FakeChainClient()
        payload = ProposalPayload(client, PAYLOAD_ADDRESS)
        uri = "https://forum.aztec.network/t/1".encode()
        client.respond(
            PAYLOAD_ADDRESS, ProposalPayload.Selectors.GET_ORIGINAL_PAYLOAD,
            value=result(address_word(ROLLUP_ADDRESS)),
        )
        client.respond(
            PAYLOAD_ADDRESS, ProposalPayload.Selectors.GET_URI,
            value=result(word(32), word(len(uri))) + uri.hex().ljust(64, "0"),
        )

        assert await payload.get_original_payload() == ROLLUP_ADDRESS
        assert await payload.get_uri() == "https://forum.aztec.network/t/1"
