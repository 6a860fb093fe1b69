#!/usr/bin/env python3
"""Entry point for the Aztec governance monitor.

Polls the governance proposer, governance, stake registry and rollup contracts
through a JSON-RPC endpoint and reports new proposals and reached quorums.
"""

import argparse
import asyncio
import logging
import os
import sys

# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

# Get logger for this module
logger = logging.getLogger(__name__)

from aztec_monitor.config import MonitorConfig
from aztec_monitor.errors import ConfigurationError, CycleAbortedError
from aztec_monitor.monitor import GovernanceMonitor, MonitorScheduler
from aztec_monitor.notifier import LoggingNotificationSink
from aztec_monitor.storage import JsonFileStore

DEFAULT_STATE_FILE = "governance_state.json"


async def main() -> None:
    """Main entry point for the governance monitor.

    Parses startup arguments, loads configuration from environment,
    and either runs a single cycle or polls until interrupted.

    Raises:
        SystemExit: On configuration errors or a failed single cycle
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Aztec Governance Monitor - Track governance rounds, proposals and quorum",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  RPC_URL                      - JSON-RPC endpoint (default: http://localhost:8545)
  GOVERNANCE_PROPOSER_ADDRESS  - GovernanceProposer contract address
  ROLLUP_ADDRESS               - Rollup instance address
  GOVERNANCE_ADDRESS           - Governance contract (optional)
  GSE_ADDRESS                  - GSE stake registry (optional)
  POLL_INTERVAL_MINUTES        - Polling interval (default: 60)
  RATE_LIMIT_ENABLED           - Throttle RPC requests (default: false)
  REQUESTS_PER_SECOND          - Request rate when throttled (default: 5)
  STATE_FILE                   - Snapshot file (default: governance_state.json)
  LOG_LEVEL                    - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single monitoring cycle and exit"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    parser.add_argument(
        "--state-file",
        default=os.environ.get("STATE_FILE", DEFAULT_STATE_FILE),
        help=f"Path of the JSON state file (default: {DEFAULT_STATE_FILE})"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("=== Aztec Governance Monitor Starting ===")
    logger.info("Loading configuration from environment...")

    try:
        config: MonitorConfig = MonitorConfig.from_env()
        config.log_config()

        monitor = GovernanceMonitor(
            store=JsonFileStore(args.state_file),
            sink=LoggingNotificationSink(),
            config=config,
        )

        if args.once:
            try:
                result = await monitor.run_cycle()
            finally:
                await monitor.aclose()
            logger.info(f"Single cycle finished with {len(result.events)} event(s)")
            return

        scheduler = MonitorScheduler(monitor, config.monitoring.poll_interval_seconds)
        await scheduler.run()

    except ConfigurationError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - RPC_URL: JSON-RPC endpoint")
        logger.error("  - GOVERNANCE_PROPOSER_ADDRESS / ROLLUP_ADDRESS: 20-byte hex addresses")
        logger.error("  - POLL_INTERVAL_MINUTES: 1 to 1440")
        sys.exit(1)

    except CycleAbortedError as e:
        logger.error(f"Monitoring cycle failed: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("\nReceived interrupt signal, shutting down gracefully...")
        sys.exit(0)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    # Run the main async function
    asyncio.run(main())
