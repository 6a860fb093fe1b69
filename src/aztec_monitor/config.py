#!/usr/bin/env python3
"""Configuration management for the governance monitor.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with sensible defaults, and
can be round-tripped through plain dictionaries so a persisted configuration
record can override the environment at the start of each cycle.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from web3 import Web3

from .errors import ConfigurationError

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://localhost:8545"
DEFAULT_GOVERNANCE_PROPOSER_ADDRESS = "0x06Ef1DcF87E419C48B94a331B252819FADbD63ef"
DEFAULT_ROLLUP_ADDRESS = "0x603bb2c05D474794ea97805e8De69bCcFb3bCA12"
DEFAULT_EXPLORER_BASE_URL = "https://etherscan.io/address/"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _require_int(value: Any, name: str) -> None:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _require_number(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _require_bool(value: Any, name: str) -> None:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _require_str(value: Any, name: str) -> None:
    if not isinstance(value, str):
        raise ConfigurationError(f"{name} must be a string, got {value!r}")


def _checksum(value: str, name: str) -> str:
    """Validate a 20-byte hex address and return its checksummed form."""
    if not value:
        raise ConfigurationError(f"{name} is required")
    _require_str(value, name)
    # Addresses compare case-insensitively, so mixed case is not checksum-verified
    if not (value.startswith("0x") and len(value) == 42) or not Web3.is_address(value.lower()):
        raise ConfigurationError(f"Invalid {name}: {value}")
    return Web3.to_checksum_address(value.lower())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _env_number(name: str, default: Any, cast: type) -> Any:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a {cast.__name__}, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class RpcConfig:
    """JSON-RPC endpoint settings.

    Attributes:
        rpc_url: HTTP(S) JSON-RPC endpoint
        request_timeout: Per-request timeout in seconds
        rate_limit_enabled: Whether to space out outbound requests
        requests_per_second: Maximum request rate when rate limiting
    """

    rpc_url: str = DEFAULT_RPC_URL
    request_timeout: float = 30.0
    rate_limit_enabled: bool = False
    requests_per_second: float = 5.0

    def __post_init__(self) -> None:
        """Validate RPC configuration."""
        if not self.rpc_url:
            raise ConfigurationError("RPC URL is required (RPC_URL)")
        _require_str(self.rpc_url, "RPC URL")
        _require_number(self.request_timeout, "Request timeout")
        _require_bool(self.rate_limit_enabled, "Rate limit flag")
        _require_number(self.requests_per_second, "Requests per second")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"Invalid RPC URL: {self.rpc_url}. Expected an http or https URL"
            )

        if self.request_timeout <= 0:
            raise ConfigurationError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ConfigurationError(f"Request timeout too long (max 120s), got {self.request_timeout}")

        if self.requests_per_second <= 0:
            raise ConfigurationError(
                f"Requests per second must be positive, got {self.requests_per_second}"
            )
        if self.requests_per_second > 100:
            raise ConfigurationError(
                f"Requests per second too high (max 100), got {self.requests_per_second}"
            )


@dataclass(frozen=True, slots=True)
class ContractsConfig:
    """Addresses of the monitored contracts.

    The governance and GSE addresses are optional; when one is missing the
    corresponding auxiliary section is simply not fetched.
    """

    governance_proposer_address: str = DEFAULT_GOVERNANCE_PROPOSER_ADDRESS
    rollup_address: str = DEFAULT_ROLLUP_ADDRESS
    governance_address: str | None = None
    gse_address: str | None = None

    def __post_init__(self) -> None:
        """Validate and checksum every configured address."""
        # Use object.__setattr__ since dataclass is frozen
        object.__setattr__(
            self,
            "governance_proposer_address",
            _checksum(self.governance_proposer_address, "governance proposer address"),
        )
        object.__setattr__(
            self, "rollup_address", _checksum(self.rollup_address, "rollup address")
        )
        if self.governance_address:
            object.__setattr__(
                self,
                "governance_address",
                _checksum(self.governance_address, "governance address"),
            )
        else:
            object.__setattr__(self, "governance_address", None)
        if self.gse_address:
            object.__setattr__(self, "gse_address", _checksum(self.gse_address, "GSE address"))
        else:
            object.__setattr__(self, "gse_address", None)


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Polling and fetch-window settings."""

    poll_interval_minutes: int = 60
    round_window: int = 8  # rounds to look back from the current one
    proposal_window: int = 10  # most recent proposals to decode
    block_sample_size: int = 16  # recent blocks used for block-time estimate
    cycle_timeout: float | None = None  # seconds, defaults to the poll interval

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        _require_int(self.poll_interval_minutes, "Poll interval")
        _require_int(self.round_window, "Round window")
        _require_int(self.proposal_window, "Proposal window")
        _require_int(self.block_sample_size, "Block sample size")
        if self.cycle_timeout is not None:
            _require_number(self.cycle_timeout, "Cycle timeout")

        if not 1 <= self.poll_interval_minutes <= 1440:
            raise ConfigurationError(
                f"Poll interval must be between 1 and 1440 minutes, got {self.poll_interval_minutes}"
            )
        if not 1 <= self.round_window <= 64:
            raise ConfigurationError(f"Round window must be between 1 and 64, got {self.round_window}")
        if not 0 <= self.proposal_window <= 100:
            raise ConfigurationError(
                f"Proposal window must be between 0 and 100, got {self.proposal_window}"
            )
        if not 0 <= self.block_sample_size <= 64:
            raise ConfigurationError(
                f"Block sample size must be between 0 and 64, got {self.block_sample_size}"
            )
        if self.cycle_timeout is not None and self.cycle_timeout <= 0:
            raise ConfigurationError(f"Cycle timeout must be positive, got {self.cycle_timeout}")

    @property
    def poll_interval_seconds(self) -> int:
        return self.poll_interval_minutes * 60

    @property
    def effective_cycle_timeout(self) -> float:
        if self.cycle_timeout is not None:
            return self.cycle_timeout
        return float(self.poll_interval_seconds)


@dataclass(frozen=True, slots=True)
class NotificationConfig:
    """Which transitions produce notifications."""

    notify_on_new_proposal: bool = True
    notify_on_quorum_reached: bool = True

    def __post_init__(self) -> None:
        _require_bool(self.notify_on_new_proposal, "New proposal toggle")
        _require_bool(self.notify_on_quorum_reached, "Quorum reached toggle")


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Main configuration for the governance monitor.

    Attributes:
        rpc: JSON-RPC endpoint settings
        contracts: Monitored contract addresses
        monitoring: Polling and fetch-window settings
        notifications: Notification toggles
        explorer_base_url: Block explorer prefix, used only for link rendering
    """

    rpc: RpcConfig = field(default_factory=RpcConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    explorer_base_url: str = DEFAULT_EXPLORER_BASE_URL

    def __post_init__(self) -> None:
        if not self.explorer_base_url:
            raise ConfigurationError("Explorer base URL is required (EXPLORER_BASE_URL)")
        _require_str(self.explorer_base_url, "Explorer base URL")

    def explorer_url(self, address: str) -> str:
        return self.explorer_base_url + address

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Load configuration from environment variables.

        Returns:
            MonitorConfig instance with loaded values

        Raises:
            ConfigurationError: If a variable is malformed or fails validation
        """
        rpc_config = RpcConfig(
            rpc_url=os.environ.get("RPC_URL", DEFAULT_RPC_URL),
            request_timeout=_env_number("REQUEST_TIMEOUT", 30.0, float),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", False),
            requests_per_second=_env_number("REQUESTS_PER_SECOND", 5.0, float),
        )

        contracts_config = ContractsConfig(
            governance_proposer_address=os.environ.get(
                "GOVERNANCE_PROPOSER_ADDRESS", DEFAULT_GOVERNANCE_PROPOSER_ADDRESS
            ),
            rollup_address=os.environ.get("ROLLUP_ADDRESS", DEFAULT_ROLLUP_ADDRESS),
            governance_address=os.environ.get("GOVERNANCE_ADDRESS") or None,
            gse_address=os.environ.get("GSE_ADDRESS") or None,
        )

        monitoring_config = MonitoringConfig(
            poll_interval_minutes=_env_number("POLL_INTERVAL_MINUTES", 60, int),
            round_window=_env_number("ROUND_WINDOW", 8, int),
            proposal_window=_env_number("PROPOSAL_WINDOW", 10, int),
            block_sample_size=_env_number("BLOCK_SAMPLE_SIZE", 16, int),
            cycle_timeout=_env_number("CYCLE_TIMEOUT", None, float),
        )

        notification_config = NotificationConfig(
            notify_on_new_proposal=_env_bool("NOTIFY_ON_NEW_PROPOSAL", True),
            notify_on_quorum_reached=_env_bool("NOTIFY_ON_QUORUM_REACHED", True),
        )

        return cls(
            rpc=rpc_config,
            contracts=contracts_config,
            monitoring=monitoring_config,
            notifications=notification_config,
            explorer_base_url=os.environ.get("EXPLORER_BASE_URL", DEFAULT_EXPLORER_BASE_URL),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a nested dictionary for persistence."""
        return {
            "rpc": {
                "rpc_url": self.rpc.rpc_url,
                "request_timeout": self.rpc.request_timeout,
                "rate_limit_enabled": self.rpc.rate_limit_enabled,
                "requests_per_second": self.rpc.requests_per_second,
            },
            "contracts": {
                "governance_proposer_address": self.contracts.governance_proposer_address,
                "rollup_address": self.contracts.rollup_address,
                "governance_address": self.contracts.governance_address,
                "gse_address": self.contracts.gse_address,
            },
            "monitoring": {
                "poll_interval_minutes": self.monitoring.poll_interval_minutes,
                "round_window": self.monitoring.round_window,
                "proposal_window": self.monitoring.proposal_window,
                "block_sample_size": self.monitoring.block_sample_size,
                "cycle_timeout": self.monitoring.cycle_timeout,
            },
            "notifications": {
                "notify_on_new_proposal": self.notifications.notify_on_new_proposal,
                "notify_on_quorum_reached": self.notifications.notify_on_quorum_reached,
            },
            "explorer_base_url": self.explorer_base_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonitorConfig":
        """Build a config from a persisted record.

        Raises:
            ConfigurationError: If the record is incomplete or invalid
        """
        try:
            return cls(
                rpc=RpcConfig(**data.get("rpc", {})),
                contracts=ContractsConfig(**data.get("contracts", {})),
                monitoring=MonitoringConfig(**data.get("monitoring", {})),
                notifications=NotificationConfig(**data.get("notifications", {})),
                explorer_base_url=data.get("explorer_base_url", DEFAULT_EXPLORER_BASE_URL),
            )
        except (TypeError, AttributeError) as e:
            raise ConfigurationError(f"Malformed configuration record: {e}") from e

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Governance Monitor Configuration")
        logger.info("=" * 60)

        logger.info("RPC:")
        logger.info(f"  URL: {self.rpc.rpc_url}")
        logger.info(f"  Request Timeout: {self.rpc.request_timeout} seconds")
        if self.rpc.rate_limit_enabled:
            logger.info(f"  Rate Limit: {self.rpc.requests_per_second} requests/second")
        else:
            logger.info("  Rate Limit: disabled")

        logger.info("Contracts:")
        logger.info(f"  Governance Proposer: {self.contracts.governance_proposer_address}")
        logger.info(f"  Rollup: {self.contracts.rollup_address}")
        logger.info(f"  Governance: {self.contracts.governance_address or '[NOT CONFIGURED]'}")
        logger.info(f"  GSE: {self.contracts.gse_address or '[NOT CONFIGURED]'}")

        logger.info("Monitoring Settings:")
        logger.info(f"  Poll Interval: {self.monitoring.poll_interval_minutes} minutes")
        logger.info(f"  Round Window: {self.monitoring.round_window}")
        logger.info(f"  Proposal Window: {self.monitoring.proposal_window}")
        logger.info(f"  Block Sample Size: {self.monitoring.block_sample_size}")
        logger.info(f"  Cycle Timeout: {self.monitoring.effective_cycle_timeout} seconds")

        logger.info("Notifications:")
        logger.info(f"  New Proposal: {self.notifications.notify_on_new_proposal}")
        logger.info(f"  Quorum Reached: {self.notifications.notify_on_quorum_reached}")

        logger.info("=" * 60)
