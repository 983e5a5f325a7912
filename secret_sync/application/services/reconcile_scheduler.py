"""
Application service: timer-driven trigger for the sync use-case.

Each scheduled identity gets one daemon worker thread that runs a cycle,
then waits the reconcile interval on its own stop event before running the
next one, whatever the outcome of the previous cycle. One thread per sink
target serialises cycles for that target; distinct targets run concurrently
and share the same source and sink adapters.

A target belongs to the binding (owner uid) that scheduled it first. Another
binding asking for the same target is refused until the first one is
unscheduled.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from secret_sync.application.use_cases.sync_secret import SyncSecretUseCase
from secret_sync.domain.entities.secret import SecretIdentity, SyncResult
from secret_sync.domain.errors import TargetConflictError

logger = logging.getLogger(__name__)

ResultCallback = Callable[[SyncResult], None]


@dataclass
class _Worker:
    identity: SecretIdentity
    stop: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None
    # superseded worker for the same target, joined before the first cycle
    previous: Optional["_Worker"] = None


class ReconcileScheduler:
    def __init__(
        self,
        use_case: SyncSecretUseCase,
        interval: float = 10.0,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._use_case = use_case
        self._interval = interval
        self._on_result = on_result
        self._lock = threading.Lock()
        self._workers: dict[tuple[str, str], _Worker] = {}
        self._results: dict[tuple[str, str], SyncResult] = {}
        self._closed = False

    @property
    def interval(self) -> float:
        return self._interval

    def schedule(self, identity: SecretIdentity) -> bool:
        """Start reconciling *identity*; the first cycle runs as soon as any
        cycle of a replaced worker for the same target has finished.

        Rescheduling a target with a changed binding from the same owner
        replaces the old worker. Returns False when nothing changed.

        Raises:
            TargetConflictError: the target is reconciled for another owner.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("scheduler is shut down")
            current = self._workers.get(identity.key)
            if current is not None:
                if _same_binding(current.identity, identity):
                    return False
                if _owner_uid(current.identity) != _owner_uid(identity):
                    logger.warning(
                        "Refusing %s: target already reconciled for %s",
                        identity,
                        _owner_uid(current.identity) or "prefix discovery",
                    )
                    raise TargetConflictError(*identity.key)
                current.stop.set()
            worker = _Worker(identity=identity, previous=current)
            worker.thread = threading.Thread(
                target=self._run,
                args=(worker,),
                name=f"reconcile-{identity.namespace}/{identity.name}",
                daemon=True,
            )
            self._workers[identity.key] = worker
            self._results.pop(identity.key, None)
            worker.thread.start()

        if current is not None:
            logger.info("Rebinding %s/%s", *identity.key)
        logger.info("Scheduled %s every %.1fs", identity, self._interval)
        return True

    def unschedule(self, namespace: str, name: str, owner_uid: Optional[str] = None) -> bool:
        """Stop reconciling a target and wait for its in-flight cycle.

        With *owner_uid* the target is only released when it is reconciled
        for that owner.
        """
        with self._lock:
            worker = self._workers.get((namespace, name))
            if worker is None:
                return False
            if owner_uid is not None and _owner_uid(worker.identity) != owner_uid:
                logger.info("Keeping %s: not reconciled for owner %s", worker.identity, owner_uid)
                return False
            del self._workers[(namespace, name)]
            self._results.pop((namespace, name), None)
        self._stop(worker)
        logger.info("Unscheduled %s", worker.identity)
        return True

    def scheduled(self) -> list[SecretIdentity]:
        with self._lock:
            return [worker.identity for worker in self._workers.values()]

    def last_result(self, namespace: str, name: str) -> Optional[SyncResult]:
        with self._lock:
            return self._results.get((namespace, name))

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop all workers. Cycles already writing finish before their thread exits."""
        with self._lock:
            self._closed = True
            workers = list(self._workers.values())
            self._workers.clear()
        for worker in workers:
            worker.stop.set()
        for worker in workers:
            self._join(worker, timeout)
        logger.info("Reconcile scheduler stopped (%d worker(s))", len(workers))

    def _run(self, worker: _Worker) -> None:
        if worker.previous is not None:
            self._join(worker.previous, None)
            worker.previous = None
        while not worker.stop.is_set():
            result = self._use_case.try_execute(worker.identity, worker.stop)
            if worker.stop.is_set():
                break
            with self._lock:
                if self._workers.get(worker.identity.key) is worker:
                    self._results[worker.identity.key] = result
            if self._on_result is not None:
                try:
                    self._on_result(result)
                except Exception:
                    logger.exception("Result callback failed for %s", worker.identity)
            if worker.stop.wait(self._interval):
                break

    def _stop(self, worker: _Worker) -> None:
        worker.stop.set()
        self._join(worker, None)

    @staticmethod
    def _join(worker: _Worker, timeout: Optional[float]) -> None:
        thread = worker.thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout)


def _same_binding(left: SecretIdentity, right: SecretIdentity) -> bool:
    return left == right and left.owner == right.owner


def _owner_uid(identity: SecretIdentity) -> Optional[str]:
    return identity.owner.uid if identity.owner is not None else None
