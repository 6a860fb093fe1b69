#!/usr/bin/env python3
"""Data models for the governance monitor.

This module provides immutable data classes for the on-chain state the monitor
reconstructs each cycle (governance rounds, proposals, stake distribution and
rollup metrics) and for the notification events derived from it. Every record
round-trips through plain dictionaries so the persistence collaborator can
store it as JSON.
"""

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any

from .utils.abi_codec import normalize_address, short_address

# Yearly reward budget of the rollup, in whole tokens
YEARLY_REWARD_BUDGET = 249_000_000.0


@dataclass(frozen=True, slots=True)
class RoundRecord:
    """A single governance signalling round as observed in one cycle.

    ``quorum_reached`` is computed at fetch time against the quorum size of
    that cycle and is never recomputed afterwards.

    Attributes:
        round_number: Monotonic round identifier
        slot_number: Slot at which the round's payload was last signalled
        payload: Lowercase payload address, None when no proposal exists
        executed: Whether the round's payload has been executed
        signal_count: Signals for the payload; present iff payload is present
        quorum_reached: signal_count >= quorum size when fetched
    """

    round_number: int
    slot_number: int
    payload: str | None = None
    executed: bool = False
    signal_count: int | None = None
    quorum_reached: bool = False

    def __post_init__(self) -> None:
        if (self.payload is None) != (self.signal_count is None):
            raise ValueError(
                f"Round {self.round_number}: signal_count must be present iff payload is present"
            )
        if self.quorum_reached and self.signal_count is None:
            raise ValueError(f"Round {self.round_number}: quorum_reached without signal_count")
        if self.payload is not None:
            object.__setattr__(self, "payload", normalize_address(self.payload))

    @property
    def has_proposal(self) -> bool:
        return self.payload is not None

    @property
    def status_text(self) -> str:
        if not self.has_proposal:
            return "No proposal"
        if self.executed:
            return "Executed"
        if self.quorum_reached:
            return "Quorum reached"
        return "Pending"

    @property
    def short_payload(self) -> str | None:
        return short_address(self.payload) if self.payload else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "round_number": self.round_number,
            "slot_number": self.slot_number,
            "payload": self.payload,
            "executed": self.executed,
            "signal_count": self.signal_count,
            "quorum_reached": self.quorum_reached,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoundRecord":
        return cls(
            round_number=int(data["round_number"]),
            slot_number=int(data["slot_number"]),
            payload=data.get("payload"),
            executed=bool(data.get("executed", False)),
            signal_count=data.get("signal_count"),
            quorum_reached=bool(data.get("quorum_reached", False)),
        )


class ProposalState(IntEnum):
    """Governance proposal lifecycle state, numbered as on-chain."""

    PENDING = 0
    ACTIVE = 1
    QUEUED = 2
    EXECUTABLE = 3
    REJECTED = 4
    EXECUTED = 5
    DROPPABLE = 6
    DROPPED = 7
    EXPIRED = 8

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def is_terminal(self) -> bool:
        return self in (
            ProposalState.EXECUTED,
            ProposalState.DROPPED,
            ProposalState.EXPIRED,
            ProposalState.REJECTED,
        )


@dataclass(frozen=True, slots=True)
class ProposalConfiguration:
    """Per-proposal governance parameters; durations are in seconds."""

    voting_delay: int
    voting_duration: int
    execution_delay: int
    grace_period: int
    quorum_percent: float
    yea_margin_percent: float
    minimum_votes: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "voting_delay": self.voting_delay,
            "voting_duration": self.voting_duration,
            "execution_delay": self.execution_delay,
            "grace_period": self.grace_period,
            "quorum_percent": self.quorum_percent,
            "yea_margin_percent": self.yea_margin_percent,
            "minimum_votes": self.minimum_votes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProposalConfiguration":
        return cls(**data)


@dataclass(frozen=True, slots=True)
class Ballot:
    """Summed votes in whole tokens."""

    yea: float
    nay: float

    def to_dict(self) -> dict[str, Any]:
        return {"yea": self.yea, "nay": self.nay}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Ballot":
        return cls(yea=float(data["yea"]), nay=float(data["nay"]))


@dataclass(frozen=True, slots=True)
class ProposalRecord:
    """A governance proposal decoded from ``getProposal``.

    Lifecycle phase boundaries are derived from the creation timestamp plus
    the configured durations: voting delay, voting duration, execution delay
    and grace period, in that order.
    """

    proposal_id: int
    state: ProposalState
    config: ProposalConfiguration
    payload_address: str
    proposer_address: str
    creation: int
    ballot: Ballot
    original_payload: str | None = None
    uri: str | None = None
    snapshot_power: float | None = None

    @property
    def pending_through(self) -> int:
        return self.creation + self.config.voting_delay

    @property
    def active_through(self) -> int:
        return self.pending_through + self.config.voting_duration

    @property
    def queued_through(self) -> int:
        return self.active_through + self.config.execution_delay

    @property
    def executable_through(self) -> int:
        return self.queued_through + self.config.grace_period

    @property
    def total_lifecycle_duration(self) -> int:
        return self.executable_through - self.creation

    @property
    def next_state_change_time(self) -> int | None:
        """End of the current phase, None for states without a deadline."""
        match self.state:
            case ProposalState.PENDING:
                return self.pending_through
            case ProposalState.ACTIVE:
                return self.active_through
            case ProposalState.QUEUED:
                return self.queued_through
            case ProposalState.EXECUTABLE:
                return self.executable_through
            case _:
                return None

    def time_remaining(self, now: float) -> float | None:
        """Seconds left in the current phase, None if past or not applicable."""
        deadline = self.next_state_change_time
        if deadline is None:
            return None
        remaining = deadline - now
        return remaining if remaining > 0 else None

    @property
    def total_votes(self) -> float:
        return self.ballot.yea + self.ballot.nay

    @property
    def yea_percentage(self) -> float:
        if self.total_votes <= 0:
            return 0.0
        return self.ballot.yea / self.total_votes * 100

    @property
    def nay_percentage(self) -> float:
        if self.total_votes <= 0:
            return 0.0
        return self.ballot.nay / self.total_votes * 100

    def quorum_progress(self, total_power: float) -> float:
        if total_power <= 0:
            return 0.0
        return self.total_votes / total_power * 100

    def is_quorum_met(self, total_power: float) -> bool:
        required = self.config.quorum_percent / 100 * total_power
        return self.total_votes >= required

    def required_yea_percent(self) -> float:
        return (1 + self.config.yea_margin_percent / 100) / 2 * 100

    def is_margin_met(self) -> bool:
        if self.total_votes <= 0:
            return False
        return self.ballot.yea > self.total_votes * self.required_yea_percent() / 100

    def is_minimum_power_met(self) -> bool:
        if self.snapshot_power is None:
            return False
        return self.snapshot_power >= self.config.minimum_votes

    @property
    def is_uri_url(self) -> bool:
        return bool(self.uri) and self.uri.startswith(("http://", "https://"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "proposal_id": self.proposal_id,
            "state": int(self.state),
            "config": self.config.to_dict(),
            "payload_address": self.payload_address,
            "proposer_address": self.proposer_address,
            "creation": self.creation,
            "ballot": self.ballot.to_dict(),
            "original_payload": self.original_payload,
            "uri": self.uri,
            "snapshot_power": self.snapshot_power,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProposalRecord":
        return cls(
            proposal_id=int(data["proposal_id"]),
            state=ProposalState(int(data["state"])),
            config=ProposalConfiguration.from_dict(data["config"]),
            payload_address=data["payload_address"],
            proposer_address=data["proposer_address"],
            creation=int(data["creation"]),
            ballot=Ballot.from_dict(data["ballot"]),
            original_payload=data.get("original_payload"),
            uri=data.get("uri"),
            snapshot_power=data.get("snapshot_power"),
        )


@dataclass(frozen=True, slots=True)
class GovernanceData:
    """Governance totals plus the most recent proposals (newest first)."""

    proposal_count: int
    total_power: float
    proposals: tuple[ProposalRecord, ...] = ()

    @property
    def active_proposals(self) -> list[ProposalRecord]:
        return [p for p in self.proposals if not p.state.is_terminal]

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposal_count": self.proposal_count,
            "total_power": self.total_power,
            "proposals": [p.to_dict() for p in self.proposals],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GovernanceData":
        return cls(
            proposal_count=int(data["proposal_count"]),
            total_power=float(data["total_power"]),
            proposals=tuple(ProposalRecord.from_dict(p) for p in data.get("proposals", [])),
        )


@dataclass(frozen=True, slots=True)
class StakeSnapshot:
    """Stake distribution as reported by the stake registry (GSE).

    The registry reports supply and attester counts asymmetrically:
    ``supplyOf(rollup)`` returns direct stake only, while
    ``getAttesterCountAtTime(rollup)`` already includes the bonus instance
    when the rollup is canonical. Direct and effective values are derived
    from the raw fields rather than stored.
    """

    total_supply: float
    bonus_instance_address: str | None
    bonus_supply: float
    rollup_supply_raw: float
    bonus_attester_count: int
    rollup_attester_count_raw: int
    rollup_is_canonical: bool
    activation_threshold: float

    @property
    def rollup_supply_direct(self) -> float:
        return self.rollup_supply_raw

    @property
    def rollup_supply_effective(self) -> float:
        if self.rollup_is_canonical:
            return self.rollup_supply_raw + self.bonus_supply
        return self.rollup_supply_raw

    @property
    def rollup_attester_count_direct(self) -> int:
        if self.rollup_is_canonical:
            return max(0, self.rollup_attester_count_raw - self.bonus_attester_count)
        return self.rollup_attester_count_raw

    @property
    def rollup_attester_count_effective(self) -> int:
        return self.rollup_attester_count_raw

    @property
    def total_attester_count(self) -> int:
        return self.bonus_attester_count + self.rollup_attester_count_direct

    @property
    def bonus_supply_percentage(self) -> float:
        return _percentage(self.bonus_supply, self.total_supply)

    @property
    def rollup_supply_direct_percentage(self) -> float:
        return _percentage(self.rollup_supply_direct, self.total_supply)

    @property
    def rollup_supply_effective_percentage(self) -> float:
        return _percentage(self.rollup_supply_effective, self.total_supply)

    @property
    def bonus_attester_percentage(self) -> float:
        return _percentage(self.bonus_attester_count, self.total_attester_count)

    @property
    def rollup_attester_direct_percentage(self) -> float:
        return _percentage(self.rollup_attester_count_direct, self.total_attester_count)

    @property
    def estimated_apy(self) -> float:
        """Yearly rewards per attester relative to the activation threshold."""
        attesters = self.rollup_attester_count_effective
        if attesters <= 0 or self.activation_threshold <= 0:
            return 0.0
        rewards_per_attester = YEARLY_REWARD_BUDGET / attesters
        return rewards_per_attester / self.activation_threshold * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "bonus_instance_address": self.bonus_instance_address,
            "bonus_supply": self.bonus_supply,
            "rollup_supply_raw": self.rollup_supply_raw,
            "bonus_attester_count": self.bonus_attester_count,
            "rollup_attester_count_raw": self.rollup_attester_count_raw,
            "rollup_is_canonical": self.rollup_is_canonical,
            "activation_threshold": self.activation_threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StakeSnapshot":
        return cls(**data)


@dataclass(frozen=True, slots=True)
class RollupMetrics:
    """Rollup block production metrics.

    ``recent_block_slots`` holds the slots of the most recent blocks, newest
    first, and is only used to estimate the average block time.
    """

    pending_block_number: int
    proven_block_number: int
    target_committee_size: int
    block_reward: float
    entry_queue_length: int
    genesis_time: int
    slot_duration: int
    recent_block_slots: tuple[int, ...] = ()
    fetched_at: float = 0.0
    epoch_duration: int | None = None
    entry_queue_flush_size: int | None = None

    @property
    def unproven_blocks(self) -> int:
        return max(0, self.pending_block_number - self.proven_block_number)

    @property
    def total_rewards_paid(self) -> float:
        return self.proven_block_number * self.block_reward

    @property
    def rewards_as_percentage_of_yearly_budget(self) -> float:
        return self.total_rewards_paid / YEARLY_REWARD_BUDGET * 100

    def committee_probability(self, total_attesters: int) -> float:
        """Chance (percent) of an attester landing in the next committee."""
        return _percentage(self.target_committee_size, total_attesters)

    def timestamp_for_slot(self, slot: int) -> int:
        return self.genesis_time + slot * self.slot_duration

    @property
    def average_block_time(self) -> float | None:
        """Mean seconds between recent blocks, None with too few samples."""
        slots = self.recent_block_slots
        diffs = [
            newer - older
            for newer, older in zip(slots, slots[1:])
            if newer > older
        ]
        if not diffs:
            return None
        return sum(diffs) / len(diffs) * self.slot_duration

    @property
    def blocks_in_average(self) -> int:
        return max(0, len(self.recent_block_slots) - 1)

    @property
    def time_since_last_block(self) -> float | None:
        if not self.recent_block_slots:
            return None
        return self.fetched_at - self.timestamp_for_slot(self.recent_block_slots[0])

    def to_dict(self) -> dict[str, Any]:
        return {
            "pending_block_number": self.pending_block_number,
            "proven_block_number": self.proven_block_number,
            "target_committee_size": self.target_committee_size,
            "block_reward": self.block_reward,
            "entry_queue_length": self.entry_queue_length,
            "genesis_time": self.genesis_time,
            "slot_duration": self.slot_duration,
            "recent_block_slots": list(self.recent_block_slots),
            "fetched_at": self.fetched_at,
            "epoch_duration": self.epoch_duration,
            "entry_queue_flush_size": self.entry_queue_flush_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RollupMetrics":
        values = dict(data)
        values["recent_block_slots"] = tuple(values.get("recent_block_slots", ()))
        return cls(**values)


@dataclass(frozen=True, slots=True)
class MonitorSnapshot:
    """Aggregate state produced by one fetch cycle.

    A fresh snapshot is built every cycle. The two notification sets are the
    only fields carried over from the previous snapshot; keys have the form
    ``"{round_number}:{payload}"`` with a lowercase payload.
    """

    current_round: int
    current_slot: int
    rounds: tuple[RoundRecord, ...]
    quorum_size: int
    round_size: int
    fetched_at: float
    block_number: int
    notified_proposals: frozenset[str] = field(default_factory=frozenset)
    notified_quorums: frozenset[str] = field(default_factory=frozenset)
    governance: GovernanceData | None = None
    stake: StakeSnapshot | None = None
    rollup: RollupMetrics | None = None

    @staticmethod
    def notification_key(round_number: int, payload: str) -> str:
        return f"{round_number}:{normalize_address(payload)}"

    @property
    def slot_in_round(self) -> int:
        if self.round_size <= 0:
            return 0
        return self.current_slot % self.round_size

    @property
    def current_round_record(self) -> RoundRecord | None:
        return next((r for r in self.rounds if r.round_number == self.current_round), None)

    @property
    def past_rounds(self) -> tuple[RoundRecord, ...]:
        return tuple(r for r in self.rounds if r.round_number != self.current_round)

    def with_notified(
        self,
        notified_proposals: frozenset[str],
        notified_quorums: frozenset[str]
    ) -> "MonitorSnapshot":
        """Return a copy with both notification sets replaced."""
        return replace(
            self,
            notified_proposals=frozenset(notified_proposals),
            notified_quorums=frozenset(notified_quorums),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "current_round": self.current_round,
            "current_slot": self.current_slot,
            "rounds": [r.to_dict() for r in self.rounds],
            "quorum_size": self.quorum_size,
            "round_size": self.round_size,
            "fetched_at": self.fetched_at,
            "block_number": self.block_number,
            "notified_proposals": sorted(self.notified_proposals),
            "notified_quorums": sorted(self.notified_quorums),
            "governance": self.governance.to_dict() if self.governance else None,
            "stake": self.stake.to_dict() if self.stake else None,
            "rollup": self.rollup.to_dict() if self.rollup else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonitorSnapshot":
        governance = data.get("governance")
        stake = data.get("stake")
        rollup = data.get("rollup")
        return cls(
            current_round=int(data["current_round"]),
            current_slot=int(data["current_slot"]),
            rounds=tuple(RoundRecord.from_dict(r) for r in data.get("rounds", [])),
            quorum_size=int(data["quorum_size"]),
            round_size=int(data["round_size"]),
            fetched_at=float(data["fetched_at"]),
            block_number=int(data["block_number"]),
            notified_proposals=frozenset(data.get("notified_proposals", [])),
            notified_quorums=frozenset(data.get("notified_quorums", [])),
            governance=GovernanceData.from_dict(governance) if governance else None,
            stake=StakeSnapshot.from_dict(stake) if stake else None,
            rollup=RollupMetrics.from_dict(rollup) if rollup else None,
        )


@dataclass(frozen=True, slots=True)
class NewProposalEvent:
    """A payload was seen for a round for the first time."""

    round_number: int
    payload: str
    slot_number: int

    @property
    def title(self) -> str:
        return "New Proposal"

    @property
    def body(self) -> str:
        return (
            f"Round {self.round_number}: New proposal {short_address(self.payload)} "
            f"at slot {self.slot_number}"
        )


@dataclass(frozen=True, slots=True)
class QuorumReachedEvent:
    """A round's payload reached the signalling quorum."""

    round_number: int
    payload: str
    signal_count: int
    quorum_size: int

    @property
    def title(self) -> str:
        return "Quorum Reached"

    @property
    def body(self) -> str:
        return (
            f"Round {self.round_number}: Proposal {short_address(self.payload)} "
            f"reached quorum ({self.signal_count} signals)"
        )


NotificationEvent = NewProposalEvent | QuorumReachedEvent


def _percentage(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100
