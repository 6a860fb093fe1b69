#!/usr/bin/env python3
"""State aggregation for the governance monitor.

This module issues the ordered sequence of contract reads that make up one
monitoring cycle and assembles them into a single MonitorSnapshot. Round data
is mandatory: any failure there propagates and aborts the cycle. Governance,
stake and rollup sections are optional: a failure is logged and the section is
left out of the snapshot.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, TypeVar

from .config import MonitorConfig
from .contracts import GSE, Governance, GovernanceProposer, ProposalPayload, Rollup
from .errors import RPCClientError
from .models import (
    GovernanceData,
    MonitorSnapshot,
    ProposalRecord,
    RollupMetrics,
    RoundRecord,
    StakeSnapshot,
)
from .utils.abi_codec import is_zero_address, normalize_address
from .utils.rpc_client import EthRpcClient

# Get logger for this module
logger = logging.getLogger(__name__)

T = TypeVar("T")


class StateAggregator:
    """Builds one MonitorSnapshot per call from the configured contracts.

    The aggregator holds no state between calls; the only shared mutable state
    is the RPC client's throttle, which is safe under concurrent use.
    """

    def __init__(
        self,
        client: EthRpcClient,
        config: MonitorConfig,
        clock: Callable[[], float] = time.time
    ) -> None:
        """Initialize the aggregator.

        Args:
            client: RPC client shared by every accessor
            config: Monitor configuration (addresses and fetch windows)
            clock: Wall clock returning unix seconds
        """
        contracts = config.contracts
        self.client = client
        self.proposer = GovernanceProposer(client, contracts.governance_proposer_address)
        self.rollup = Rollup(client, contracts.rollup_address)
        self.governance = (
            Governance(client, contracts.governance_address)
            if contracts.governance_address else None
        )
        self.gse = GSE(client, contracts.gse_address) if contracts.gse_address else None

        self.round_window = config.monitoring.round_window
        self.proposal_window = config.monitoring.proposal_window
        self.block_sample_size = config.monitoring.block_sample_size
        self._clock = clock

    async def fetch_snapshot(self, now: float | None = None) -> MonitorSnapshot:
        """Fetch a complete snapshot.

        Args:
            now: Unix timestamp for time-dependent reads; defaults to the clock

        Returns:
            MonitorSnapshot with empty notification sets; carrying the previous
            sets forward is the caller's job

        Raises:
            RPCClientError: If any mandatory read fails
        """
        if now is None:
            now = self._clock()

        block_number = await self.client.get_block_number()
        current_round = await self.proposer.get_current_round()
        current_slot = await self.rollup.get_current_slot()
        quorum_size = await self.proposer.get_quorum_size()
        round_size = await self.proposer.get_round_size()

        rounds = await self.fetch_rounds(current_round, quorum_size)

        governance = None
        if self.governance is not None:
            governance = await self._best_effort(
                "governance section", self.fetch_governance_data, self.governance, now
            )

        stake = None
        if self.gse is not None:
            stake = await self._best_effort("stake section", self.fetch_stake_snapshot, self.gse, now)

        rollup = await self._best_effort("rollup section", self.fetch_rollup_metrics, now)

        logger.info(
            f"Fetched snapshot at block {block_number}: round {current_round}, "
            f"slot {current_slot}, {len(rounds)} rounds, "
            f"sections: governance={'yes' if governance else 'no'} "
            f"stake={'yes' if stake else 'no'} rollup={'yes' if rollup else 'no'}"
        )

        return MonitorSnapshot(
            current_round=current_round,
            current_slot=current_slot,
            rounds=tuple(rounds),
            quorum_size=quorum_size,
            round_size=round_size,
            fetched_at=now,
            block_number=block_number,
            governance=governance,
            stake=stake,
            rollup=rollup,
        )

    async def fetch_rounds(self, current_round: int, quorum_size: int) -> list[RoundRecord]:
        """Fetch every round from ``current_round`` down to the window start.

        Returns:
            RoundRecords sorted by descending round number with no gaps
        """
        start_round = max(0, current_round - self.round_window)
        rounds: list[RoundRecord] = []

        for round_number in range(current_round, start_round - 1, -1):
            data = await self.proposer.get_round_data(self.rollup.address, round_number)

            signal_count: int | None = None
            quorum_reached = False
            if data.payload is not None:
                signal_count = await self.proposer.get_signal_count(
                    self.rollup.address, round_number, data.payload
                )
                quorum_reached = signal_count >= quorum_size

            rounds.append(RoundRecord(
                round_number=round_number,
                slot_number=data.slot,
                payload=data.payload,
                executed=data.executed,
                signal_count=signal_count,
                quorum_reached=quorum_reached,
            ))

        return rounds

    async def fetch_governance_data(self, governance: Governance, now: float) -> GovernanceData:
        """Fetch governance totals and the most recent proposals, newest first."""
        proposal_count = await governance.get_proposal_count()
        total_power = await governance.get_total_power_now()

        proposals: list[ProposalRecord] = []
        oldest = max(0, proposal_count - self.proposal_window)
        for proposal_id in range(proposal_count - 1, oldest - 1, -1):
            proposal = await self._best_effort(
                f"proposal {proposal_id}", self.fetch_proposal, governance, proposal_id, now
            )
            if proposal is not None:
                proposals.append(proposal)

        return GovernanceData(
            proposal_count=proposal_count,
            total_power=total_power,
            proposals=tuple(proposals),
        )

    async def fetch_proposal(
        self, governance: Governance, proposal_id: int, now: float
    ) -> ProposalRecord:
        """Fetch one proposal plus its live state and payload metadata.

        Only ``getProposal`` itself is mandatory; the extras fall back to the
        decoded values when they fail.
        """
        proposal = await governance.get_proposal(proposal_id)

        state = await self._best_effort(
            f"state of proposal {proposal_id}", governance.get_proposal_state, proposal_id
        )
        if state is not None:
            proposal = replace(proposal, state=state)

        if not is_zero_address(proposal.payload_address):
            payload = ProposalPayload(self.client, proposal.payload_address)
            original_payload = await self._best_effort(
                f"original payload of proposal {proposal_id}",
                payload.get_original_payload,
                quiet=True,
            )
            uri = await self._best_effort(
                f"URI of proposal {proposal_id}", payload.get_uri, quiet=True
            )
            proposal = replace(proposal, original_payload=original_payload, uri=uri)

        # Voting power is snapshotted when voting opens
        if proposal.pending_through <= now:
            snapshot_power = await self._best_effort(
                f"snapshot power of proposal {proposal_id}",
                governance.get_total_power_at,
                proposal.pending_through,
            )
            proposal = replace(proposal, snapshot_power=snapshot_power)

        return proposal

    async def fetch_stake_snapshot(self, gse: GSE, now: float) -> StakeSnapshot:
        """Fetch the stake distribution for the configured rollup."""
        rollup_address = self.rollup.address
        timestamp = int(now)

        total_supply = await gse.get_total_supply()
        bonus_instance = await gse.get_bonus_instance_address()
        latest_rollup = await gse.get_latest_rollup()

        bonus_supply = 0.0
        bonus_attester_count = 0
        if bonus_instance is not None:
            bonus_supply = await gse.get_supply_of(bonus_instance)
            bonus_attester_count = await gse.get_attester_count_at_time(bonus_instance, timestamp)

        rollup_supply = await gse.get_supply_of(rollup_address)
        rollup_attester_count = await gse.get_attester_count_at_time(rollup_address, timestamp)
        activation_threshold = await self.rollup.get_activation_threshold()

        return StakeSnapshot(
            total_supply=total_supply,
            bonus_instance_address=bonus_instance,
            bonus_supply=bonus_supply,
            rollup_supply_raw=rollup_supply,
            bonus_attester_count=bonus_attester_count,
            rollup_attester_count_raw=rollup_attester_count,
            rollup_is_canonical=normalize_address(latest_rollup) == normalize_address(rollup_address),
            activation_threshold=activation_threshold,
        )

    async def fetch_rollup_metrics(self, now: float) -> RollupMetrics:
        """Fetch rollup block metrics and sample recent block slots."""
        pending_block_number = await self.rollup.get_pending_block_number()
        proven_block_number = await self.rollup.get_proven_block_number()
        target_committee_size = await self.rollup.get_target_committee_size()
        block_reward = await self.rollup.get_block_reward()
        entry_queue_length = await self.rollup.get_entry_queue_length()
        genesis_time = await self.rollup.get_genesis_time()
        slot_duration = await self.rollup.get_slot_duration()

        epoch_duration = await self._best_effort(
            "epoch duration", self.rollup.get_epoch_duration, quiet=True
        )
        entry_queue_flush_size = await self._best_effort(
            "entry queue flush size", self.rollup.get_entry_queue_flush_size, quiet=True
        )

        recent_block_slots = await self.fetch_recent_block_slots(pending_block_number)

        return RollupMetrics(
            pending_block_number=pending_block_number,
            proven_block_number=proven_block_number,
            target_committee_size=target_committee_size,
            block_reward=block_reward,
            entry_queue_length=entry_queue_length,
            genesis_time=genesis_time,
            slot_duration=slot_duration,
            recent_block_slots=tuple(recent_block_slots),
            fetched_at=now,
            epoch_duration=epoch_duration,
            entry_queue_flush_size=entry_queue_flush_size,
        )

    async def fetch_recent_block_slots(self, pending_block_number: int) -> list[int]:
        """Slots of the most recent blocks, newest first.

        Blocks are fetched concurrently; a block that fails to load or decode
        is skipped rather than failing the sample.
        """
        count = min(self.block_sample_size, pending_block_number)
        block_numbers = [pending_block_number - i for i in range(count)]
        block_numbers = [n for n in block_numbers if n > 0]

        results = await asyncio.gather(
            *(self.rollup.get_block_slot(n) for n in block_numbers),
            return_exceptions=True
        )

        slots: list[int] = []
        for block_number, result in zip(block_numbers, results):
            if isinstance(result, RPCClientError):
                logger.debug(f"Skipping block {block_number}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                slots.append(result)
        return slots

    async def _best_effort(
        self,
        description: str,
        fetch: Callable[..., Awaitable[T]],
        *args: Any,
        quiet: bool = False
    ) -> T | None:
        """Run an optional fetch, returning None when the RPC layer fails."""
        try:
            return await fetch(*args)
        except RPCClientError as e:
            if quiet:
                logger.debug(f"Unavailable {description}: {e}")
            else:
                logger.warning(f"Skipping {description}: {e}")
            return None
