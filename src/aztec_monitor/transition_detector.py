"""
Transition detection between consecutive monitor snapshots.

Turns round state into notification events exactly once per
``(round, payload)`` pair and event kind.
"""

import logging
from dataclasses import dataclass

from .config import MonitorConfig
from .models import MonitorSnapshot, NewProposalEvent, NotificationEvent, QuorumReachedEvent

# Get logger for this module
logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationPolicy:
    """Which event kinds to emit."""

    notify_on_new_proposal: bool = True
    notify_on_quorum_reached: bool = True

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "NotificationPolicy":
        return cls(
            notify_on_new_proposal=config.notifications.notify_on_new_proposal,
            notify_on_quorum_reached=config.notifications.notify_on_quorum_reached,
        )


@dataclass(frozen=True, slots=True)
class DetectionResult:
    events: tuple[NotificationEvent, ...]
    snapshot: MonitorSnapshot


def detect(
    previous: MonitorSnapshot | None,
    current: MonitorSnapshot,
    policy: NotificationPolicy
) -> DetectionResult:
    """
    Compute the events implied by ``current`` given what was already notified.

    The notification sets start from ``previous`` (empty when there is none, so
    on a first run every round in the window with a payload is reported). Events
    follow the order of ``current.rounds``, newest round first. Neither input is
    modified; the returned snapshot is ``current`` with the updated sets.

    Args:
        previous: Snapshot persisted by the last successful cycle, if any
        current: Freshly fetched snapshot
        policy: Enabled event kinds

    Returns:
        DetectionResult with the ordered events and the updated snapshot
    """
    notified_proposals = set(previous.notified_proposals) if previous else set()
    notified_quorums = set(previous.notified_quorums) if previous else set()
    events: list[NotificationEvent] = []

    for record in current.rounds:
        if record.payload is None:
            continue
        key = MonitorSnapshot.notification_key(record.round_number, record.payload)

        if policy.notify_on_new_proposal and key not in notified_proposals:
            events.append(NewProposalEvent(
                round_number=record.round_number,
                payload=record.payload,
                slot_number=record.slot_number,
            ))
            notified_proposals.add(key)

        if (
            policy.notify_on_quorum_reached
            and record.quorum_reached
            and record.signal_count is not None
            and key not in notified_quorums
        ):
            events.append(QuorumReachedEvent(
                round_number=record.round_number,
                payload=record.payload,
                signal_count=record.signal_count,
                quorum_size=current.quorum_size,
            ))
            notified_quorums.add(key)

    if events:
        logger.info(f"Detected {len(events)} new event(s)")

    return DetectionResult(
        events=tuple(events),
        snapshot=current.with_notified(frozenset(notified_proposals), frozenset(notified_quorums)),
    )
