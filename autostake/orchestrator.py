"""
StakeOrchestrator - drives the staking lifecycle across many accounts.

Each account gets its own daemon thread running
Build -> Sign -> Broadcast -> Confirm. Launches are spaced by random delays,
and a single CancellationToken stops further launches and every in-flight
wait. Outcomes are collected for the driver's summary.
"""
import logging
import random
import threading
from concurrent.futures import Future, wait as wait_futures
from enum import Enum
from typing import List, Optional, Sequence

from .cancellation import CancellationToken
from .chain import ChainGateway
from .exceptions import (
    BroadcastFailedError, ConfirmationTimeoutError, OperationCancelledError,
    RevertedTransactionError
)
from .lifecycle import (
    Broadcaster, ConfirmationState, ConfirmationWatcher, FeeGate, Signer, TransactionBuilder
)
from .models import (
    Account, LifecycleSettings, OutcomeStatus, RunParameters, RunSummary, StakeRequest,
    TransactionOutcome
)
from .sampling import DelaySchedule, sample_amount_wei, sample_choice

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    SIGNING = "signing"
    BROADCASTING = "broadcasting"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class _CompletionCounter:
    """Lock-protected count of finished account tasks."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class AccountTask:
    """One launched account: its request, current state and result future."""

    def __init__(self, request: StakeRequest):
        self.request = request
        self.state = TaskState.IDLE
        self.future: "Future[TransactionOutcome]" = Future()
        self.thread: Optional[threading.Thread] = None

    @property
    def account(self) -> Account:
        return self.request.account


class StakeOrchestrator:
    """
    Runs one independent stake task per account.

    The lifecycle components are stateless and shared by every task; nothing
    mutable is shared between accounts apart from the outcome list, which is
    guarded by a lock.

    Two signals are in play. The run token passed to ``start`` only stops new
    launches; dispatched tasks wait on the task token instead, which is fired
    by ``abort`` once the driver gives up on them.
    """

    def __init__(
        self,
        params: RunParameters,
        builder: TransactionBuilder,
        broadcaster: Broadcaster,
        watcher: ConfirmationWatcher,
        signer: Optional[Signer] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.params = params
        self.builder = builder
        self.signer = signer or Signer()
        self.broadcaster = broadcaster
        self.watcher = watcher
        self.logger = logger or logging.getLogger(__name__)
        self._rng = rng
        self._delays = DelaySchedule(params.delay, rng)

        self._tasks: List[AccountTask] = []
        self._outcomes: List[TransactionOutcome] = []
        self._lock = threading.Lock()
        self._completed = _CompletionCounter()
        self._total = 0
        self._started = False
        self._task_token = CancellationToken()

    @classmethod
    def create(
        cls,
        gateway: ChainGateway,
        params: RunParameters,
        settings: Optional[LifecycleSettings] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "StakeOrchestrator":
        """
        Wire the default lifecycle components around one gateway.

        Args:
            gateway: Connected chain gateway
            params: Run parameters
            settings: Lifecycle tunables (defaults if omitted)
            rng: Random source for amounts, validators and delays
            logger: Optional logger instance

        Returns:
            Ready-to-start orchestrator
        """
        settings = settings or LifecycleSettings()
        fee_gate = FeeGate(
            gateway,
            max_fee_wei=settings.max_fee_wei,
            poll_interval=settings.gas_poll_interval,
            timeout=settings.gas_wait_timeout,
        )
        return cls(
            params=params,
            builder=TransactionBuilder(gateway, params.contract_address, fee_gate),
            broadcaster=Broadcaster(
                gateway, retry_count=settings.retry_count, backoff=settings.retry_backoff
            ),
            watcher=ConfirmationWatcher(
                gateway,
                poll_interval=settings.receipt_poll_interval,
                timeout=settings.receipt_timeout,
            ),
            rng=rng,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def make_request(self, account: Account) -> StakeRequest:
        """Sample an amount and validator for ``account``."""
        min_wei, max_wei = self.params.stake_bounds_wei()
        return StakeRequest(
            account=account,
            amount_wei=sample_amount_wei(min_wei, max_wei, self._rng),
            validator_id=sample_choice(self.params.validators, self._rng),
        )

    def start(
        self,
        accounts: Sequence[Account],
        token: CancellationToken,
        task_token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Launch every account in order, sleeping a random delay between launches.

        Blocks until the last account is launched or the token fires. Accounts
        not yet launched at cancellation are reported as cancelled. Accounts
        already launched keep running until they finish or ``abort`` is called.

        Args:
            accounts: Accounts in launch order
            token: Stops further launches when fired
            task_token: Signal observed by launched tasks (defaults to the
                orchestrator's own, fired by ``abort``)

        Returns:
            Number of accounts launched

        Raises:
            RuntimeError: If the orchestrator was already started
        """
        with self._lock:
            if self._started:
                raise RuntimeError("Orchestrator already started")
            self._started = True
            self._total = len(accounts)
            if task_token is not None:
                self._task_token = task_token

        self.logger.info(f"Starting staking process for {len(accounts)} accounts...")

        launched = 0
        for index, account in enumerate(accounts):
            if token.cancelled:
                self._skip(accounts[index:])
                break

            self._launch(self.make_request(account), self._task_token)
            launched += 1

            if index == len(accounts) - 1:
                break
            delay = next(self._delays)
            self.logger.debug(f"Next account in {delay:.1f}s")
            if not token.sleep(delay):
                remaining = accounts[index + 1:]
                self.logger.info(
                    f"Cancellation received, not launching remaining {len(remaining)} accounts"
                )
                self._skip(remaining)
                break

        return launched

    def _launch(self, request: StakeRequest, token: CancellationToken) -> AccountTask:
        task = AccountTask(request)
        task.thread = threading.Thread(
            target=self._run_task,
            args=(task, token),
            name=f"stake-{request.account.address[:10]}",
            daemon=True,
        )
        with self._lock:
            self._tasks.append(task)
        self.logger.debug(
            f"[{request.account.short}] launching stake of {request.amount_ether} "
            f"to validator {request.validator_id}"
        )
        task.thread.start()
        return task

    def _skip(self, accounts: Sequence[Account]) -> None:
        for account in accounts:
            self._finish(
                TransactionOutcome(
                    address=account.address,
                    status=OutcomeStatus.CANCELLED,
                    error=OperationCancelledError("run cancelled before launch"),
                )
            )

    # ------------------------------------------------------------------
    # Per-account lifecycle
    # ------------------------------------------------------------------

    def _run_task(self, task: AccountTask, token: CancellationToken) -> None:
        task.future.set_running_or_notify_cancel()
        outcome = self.execute(task, token)
        self._finish(outcome)
        task.future.set_result(outcome)

    def execute(self, task: AccountTask, token: CancellationToken) -> TransactionOutcome:
        """
        Run Build -> Sign -> Broadcast -> Confirm for one account.

        Never raises: every error is turned into a TransactionOutcome so that
        one account cannot disturb another.
        """
        request = task.request
        address = request.account.address
        tx_hash: Optional[str] = None

        try:
            token.raise_if_cancelled()

            task.state = TaskState.PREPARING
            prepared = self.builder.build(request, token)

            task.state = TaskState.SIGNING
            signed = self.signer.sign(prepared, request.account.private_key)

            task.state = TaskState.BROADCASTING
            tx_hash = self.broadcaster.broadcast(signed, token)
            self.logger.info(
                f"[NONCE: {prepared.nonce}] Transaction sent: {self.params.tx_url(tx_hash)}"
            )

            task.state = TaskState.CONFIRMING
            confirmation = self.watcher.wait(tx_hash, token)
        except OperationCancelledError as e:
            status = OutcomeStatus.CANCELLED
            error: Optional[BaseException] = e
        except BroadcastFailedError as e:
            status = OutcomeStatus.BROADCAST_FAILED
            error = e
        except Exception as e:
            status = OutcomeStatus.NOT_SUBMITTED
            error = e
        else:
            if confirmation is ConfirmationState.SUCCEEDED:
                status, error = OutcomeStatus.SUCCEEDED, None
            elif confirmation is ConfirmationState.REVERTED:
                status, error = OutcomeStatus.REVERTED, RevertedTransactionError(tx_hash)
            else:
                status = OutcomeStatus.CONFIRMATION_TIMED_OUT
                error = ConfirmationTimeoutError(tx_hash, self.watcher.timeout)

        task.state = TaskState.SUCCEEDED if status is OutcomeStatus.SUCCEEDED else TaskState.FAILED
        return TransactionOutcome(address=address, status=status, tx_hash=tx_hash, error=error)

    def _finish(self, outcome: TransactionOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)
        done = self._completed.increment()
        short = f"{outcome.address[:6]}…"

        if outcome.succeeded:
            self.logger.info(
                f"[{short}] successfully staked ({done}/{self._total}): {self.params.tx_url(outcome.tx_hash)}"
            )
        elif outcome.status is OutcomeStatus.CANCELLED and outcome.tx_hash:
            self.logger.warning(
                f"[{short}] stopped waiting for confirmation ({done}/{self._total}); "
                f"transaction {outcome.tx_hash} was already submitted and may still land"
            )
        else:
            self.logger.warning(f"[{short}] failed stake ({done}/{self._total}): {outcome.reason}")

    # ------------------------------------------------------------------
    # Join barrier
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> List[AccountTask]:
        with self._lock:
            return list(self._tasks)

    @property
    def completed(self) -> int:
        return self._completed.value

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every launched task has reported an outcome.

        Args:
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            True if all tasks finished, False if the timeout expired first
        """
        futures = [task.future for task in self.tasks]
        if not futures:
            return True
        _, not_done = wait_futures(futures, timeout=timeout)
        return not not_done

    def abort(self, reason: str = "aborted") -> None:
        """Interrupt every launched task at its next suspension point."""
        self.logger.warning(f"Aborting in-flight transactions: {reason}")
        self._task_token.cancel(reason)

    def summary(self) -> RunSummary:
        with self._lock:
            return RunSummary(outcomes=list(self._outcomes), total_accounts=self._total)
