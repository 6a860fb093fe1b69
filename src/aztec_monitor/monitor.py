"""
Cycle orchestration and periodic scheduling for the governance monitor.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .config import MonitorConfig, RpcConfig
from .errors import ConfigurationError, CycleAbortedError, MonitorError, RPCClientError
from .models import MonitorSnapshot, NotificationEvent
from .notifier import NotificationSink
from .state_aggregator import StateAggregator
from .storage import SnapshotStore
from .transition_detector import NotificationPolicy, detect
from .utils.rpc_client import EthRpcClient

# Get logger for this module
logger = logging.getLogger(__name__)

ClientFactory = Callable[[RpcConfig], EthRpcClient]


def default_client_factory(rpc: RpcConfig) -> EthRpcClient:
    return EthRpcClient(
        rpc.rpc_url,
        request_timeout=rpc.request_timeout,
        rate_limit_enabled=rpc.rate_limit_enabled,
        requests_per_second=rpc.requests_per_second,
    )


@dataclass(frozen=True, slots=True)
class CycleResult:
    snapshot: MonitorSnapshot
    events: tuple[NotificationEvent, ...]


class GovernanceMonitor:
    """
    Runs one monitoring cycle at a time: load config, fetch, detect, notify, save.

    The RPC client is kept between cycles so the rate-limit clock spans them;
    it is rebuilt only when the RPC settings change.
    """

    def __init__(
        self,
        store: SnapshotStore,
        sink: NotificationSink,
        config: MonitorConfig | None = None,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], float] = time.time
    ) -> None:
        """
        Initialize the monitor.

        Args:
            store: Persistence for the previous snapshot and the config record
            sink: Receiver of notification events
            config: Default configuration, used when the store holds none
            client_factory: Builds an RPC client from RPC settings
            clock: Wall clock returning unix seconds
        """
        self.store = store
        self.sink = sink
        self.config = config
        self.client_factory = client_factory or default_client_factory
        self._clock = clock

        self._client: EthRpcClient | None = None
        self._client_rpc: RpcConfig | None = None

        self.last_error: str | None = None
        self.last_result: CycleResult | None = None

    def load_config(self) -> MonitorConfig:
        """
        Resolve the configuration for the next cycle.

        A record in the store takes precedence over the injected default.

        Raises:
            ConfigurationError: If no valid configuration is available
        """
        record = self.store.load_config()
        if record is not None:
            return MonitorConfig.from_dict(record)
        if self.config is not None:
            return self.config
        raise ConfigurationError("No configuration available")

    async def _get_client(self, rpc: RpcConfig) -> EthRpcClient:
        if self._client is not None and self._client_rpc == rpc:
            return self._client
        if self._client is not None:
            logger.info("RPC settings changed, recreating client")
            await self._client.aclose()
        self._client = self.client_factory(rpc)
        self._client_rpc = rpc
        return self._client

    async def aclose(self) -> None:
        """Release the cached RPC client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._client_rpc = None

    async def run_cycle(self) -> CycleResult:
        """
        Execute one full monitoring cycle.

        Returns:
            CycleResult with the saved snapshot and the events that were sent

        Raises:
            ConfigurationError: If the configuration is invalid; nothing is fetched
            CycleAbortedError: If a mandatory fetch fails, the cycle times out,
                or the store or sink fails; the previously saved snapshot is
                left untouched
        """
        try:
            config = self.load_config()
        except ConfigurationError as e:
            self.last_error = f"Configuration error: {e}"
            logger.error(self.last_error)
            raise

        logger.info("Starting monitoring cycle...")
        client = await self._get_client(config.rpc)
        aggregator = StateAggregator(client, config, clock=self._clock)
        timeout = config.monitoring.effective_cycle_timeout

        try:
            current = await asyncio.wait_for(aggregator.fetch_snapshot(), timeout=timeout)
        except RPCClientError as e:
            raise self._abort(f"Cycle aborted: {e}", e) from e
        except asyncio.TimeoutError as e:
            raise self._abort(f"Cycle aborted: timed out after {timeout:.0f} seconds", e) from e

        try:
            previous = self.store.load_snapshot()
        except Exception as e:
            raise self._abort(f"Cycle aborted: could not load previous snapshot: {e!r}", e) from e

        result = detect(previous, current, NotificationPolicy.from_config(config))

        try:
            if result.events:
                await self.sink.send(result.events)
        except Exception as e:
            raise self._abort(f"Cycle aborted: could not send notifications: {e!r}", e) from e

        try:
            self.store.save_snapshot(result.snapshot)
        except Exception as e:
            raise self._abort(f"Cycle aborted: could not save snapshot: {e!r}", e) from e

        self.last_error = None
        self.last_result = CycleResult(snapshot=result.snapshot, events=result.events)
        logger.info(
            f"Cycle complete: round {current.current_round}, "
            f"slot {current.slot_in_round}/{current.round_size} in round, "
            f"{len(result.events)} event(s) sent"
        )
        return self.last_result

    def _abort(self, message: str, cause: BaseException) -> CycleAbortedError:
        self.last_error = message
        logger.error(message)
        return CycleAbortedError(message, cause=cause)


class MonitorScheduler:
    """
    Runs monitoring cycles on a fixed interval.

    A lock serialises the periodic timer and manual refreshes, so at most one
    cycle is ever in flight.
    """

    def __init__(self, monitor: GovernanceMonitor, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.monitor = monitor
        self.interval_seconds = interval_seconds
        self.running = False
        self.shutdown_event = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    async def refresh_now(self) -> CycleResult:
        """Run one cycle immediately, waiting for any cycle already in flight."""
        async with self._cycle_lock:
            return await self.monitor.run_cycle()

    async def _tick(self) -> None:
        try:
            await self.refresh_now()
        except MonitorError as e:
            # Already logged by the monitor; retry on the next interval
            logger.debug(f"Cycle failed: {e}")
        except Exception as e:
            # Continue polling despite errors
            logger.error(f"Unexpected error in monitoring cycle: {e}", exc_info=True)

    async def run(self) -> None:
        """Run a cycle immediately, then every ``interval_seconds`` until stopped."""
        self.running = True
        self.shutdown_event.clear()
        logger.info(f"Scheduler started with {self.interval_seconds:.0f} second interval")

        try:
            while self.running:
                await self._tick()
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass  # Next cycle
        finally:
            self.running = False
            await self.monitor.aclose()
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop the scheduler loop after the current cycle."""
        self.running = False
        self.shutdown_event.set()
