"""Typed read-only accessors for the monitored contracts."""

from .base import ContractAccessor
from .governance import Governance, ProposalPayload
from .governance_proposer import GovernanceProposer, RoundData
from .gse import GSE
from .rollup import Rollup

__all__ = [
    "ContractAccessor",
    "GSE",
    "Governance",
    "GovernanceProposer",
    "ProposalPayload",
    "Rollup",
    "RoundData",
]
