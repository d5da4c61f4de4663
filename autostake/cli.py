"""
Command-line driver for autostake.

    autostake run --config config.yaml
    autostake accounts --config config.yaml
"""
import logging
import signal
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence

import typer
from web3 import Web3

from .accounts import load_accounts
from .cancellation import CancellationToken
from .chain import GatewayRegistry
from .config import load_config
from .exceptions import ConfigError, GatewayConnectionError, RpcError
from .models import Account, RunSummary
from .orchestrator import StakeOrchestrator
from .version import __version__

logger = logging.getLogger("autostake")

app = typer.Typer(
    help="Randomized native-coin staking across many wallets.",
    no_args_is_help=True,
    add_completion=False,
)

CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="YAML configuration file (default: $AUTOSTAKE_CONFIG or config.yaml)"
)
LOG_LEVEL_OPTION = typer.Option(
    "INFO", "--log-level", "-l", envvar="AUTOSTAKE_LOG_LEVEL", help="DEBUG, INFO, WARNING or ERROR"
)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def install_signal_handlers(token: CancellationToken) -> Callable[[], None]:
    """
    Cancel ``token`` on SIGINT/SIGTERM.

    Returns:
        Callable restoring the previous handlers
    """
    if threading.current_thread() is not threading.main_thread():
        return lambda: None

    def _handler(signum, frame):
        name = signal.Signals(signum).name
        logger.info(f"Received signal {name}, starting graceful shutdown...")
        token.cancel(f"received {name}")

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}

    def _restore() -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    return _restore


def drive(
    orchestrator: StakeOrchestrator,
    accounts: Sequence[Account],
    token: CancellationToken,
    grace_period: float,
    poll: float = 0.5,
) -> RunSummary:
    """
    Launch every account, then wait for completion.

    Once the token fires, outstanding tasks get ``grace_period`` seconds to
    finish. Anything still running afterwards is aborted and abandoned.
    """
    orchestrator.start(accounts, token)
    logger.info("Waiting for all transactions to finish...")

    while not orchestrator.wait(timeout=poll):
        if token.cancelled:
            logger.info(f"Cancellation received, waiting up to {grace_period:g}s for active transactions...")
            if orchestrator.wait(timeout=grace_period):
                logger.info("All active transactions finished.")
            else:
                logger.warning("Timed out waiting for active transactions, abandoning them.")
                orchestrator.abort("grace period expired")
                # let interrupted tasks record their outcome before the summary
                orchestrator.wait(timeout=poll)
            break
    else:
        logger.info("All transactions finished.")

    summary = orchestrator.summary()
    logger.info(f"Summary: {summary.describe()}")
    return summary


@app.command()
def run(
    config: Optional[Path] = CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    grace_period: Optional[float] = typer.Option(
        None, "--grace-period", help="Seconds to wait for in-flight transactions after cancellation"
    ),
) -> None:
    """Stake from every account in the keys file."""
    configure_logging(log_level)
    logger.info(f"autostake {__version__}")

    try:
        cfg = load_config(config)
        accounts = load_accounts(cfg.private_keys_file)
    except ConfigError as e:
        logger.error(f"Failed to load configuration: {e}")
        raise typer.Exit(code=2)

    token = CancellationToken()
    restore_signals = install_signal_handlers(token)
    try:
        with GatewayRegistry(timeout=cfg.connect_timeout) as registry:
            try:
                gateway = registry.connect("default", cfg.rpc)
            except GatewayConnectionError as e:
                logger.error(f"Failed to init chain gateway: {e}")
                raise typer.Exit(code=1)

            orchestrator = StakeOrchestrator.create(
                gateway, cfg.run_parameters(), cfg.lifecycle_settings()
            )
            drive(
                orchestrator,
                accounts,
                token,
                grace_period if grace_period is not None else cfg.grace_period,
            )
    finally:
        restore_signals()

    logger.info("Exiting.")


@app.command()
def accounts(
    config: Optional[Path] = CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """List the configured accounts and their native balances."""
    configure_logging(log_level)

    try:
        cfg = load_config(config)
        loaded = load_accounts(cfg.private_keys_file)
    except ConfigError as e:
        logger.error(f"Failed to load configuration: {e}")
        raise typer.Exit(code=2)

    with GatewayRegistry(timeout=cfg.connect_timeout) as registry:
        try:
            gateway = registry.connect("default", cfg.rpc)
        except GatewayConnectionError as e:
            logger.error(f"Failed to init chain gateway: {e}")
            raise typer.Exit(code=1)

        for account in loaded:
            try:
                balance = Web3.from_wei(gateway.balance_of(account.address), "ether")
                typer.echo(f"{account.address}  {balance}")
            except RpcError as e:
                typer.echo(f"{account.address}  error: {e}")


def main() -> None:
    app()
