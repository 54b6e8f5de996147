from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from threading import Event, Thread

from .actions import Runtime
from .alerts import EmailNotifier
from .config import WatcherConfig
from .docker_ops import DockerRuntime, make_client
from .events import EventLog
from .oracle import SteamVersionOracle
from .reconciler import ContainerReconciler, Oracle, Outcome, OutcomeKind
from .settings import Settings
from .state_store import StateStore
from .status import FleetStatus

log = logging.getLogger(__name__)


class FleetScheduler:
    """Runs one reconciliation step for every container per interval.

    Containers are independent: a failure (or a bug) in one never stops the
    others. `stop()` lets the in-flight tick finish before the thread exits.
    """

    def __init__(self, reconcilers: list[ContainerReconciler], interval_s: float, max_workers: int = 1):
        self.reconcilers = list(reconcilers)
        self.interval_s = max(1.0, float(interval_s))
        self.max_workers = max(1, int(max_workers))
        self._stop = Event()
        self._thr: Thread | None = None

    def get(self, name: str) -> ContainerReconciler | None:
        for r in self.reconcilers:
            if r.name == name:
                return r
        return None

    def _step_one(self, r: ContainerReconciler) -> Outcome:
        try:
            return r.step()
        except Exception as e:
            log.exception("Reconciliation of %s crashed", r.name)
            return Outcome(OutcomeKind.FAILED, reason=f"{type(e).__name__}: {e}", error=e)

    def tick(self) -> dict[str, Outcome]:
        active = [r for r in self.reconcilers if not r.excluded]
        if self.max_workers == 1 or len(active) <= 1:
            results = {r.name: self._step_one(r) for r in active}
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="vdr-reconcile") as pool:
                outcomes = pool.map(self._step_one, active)
                results = {r.name: o for r, o in zip(active, outcomes)}

        counts: dict[str, int] = {}
        for o in results.values():
            counts[o.kind.value] = counts.get(o.kind.value, 0) + 1
        log.info("Tick finished: %s", ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "no containers")
        return results

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, name="vdr-scheduler", daemon=True)
        self._thr.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thr is not None:
            self._thr.join(timeout)

    def _loop(self) -> None:
        log.info("Scheduler started: %d container(s), every %ss", len(self.reconcilers), self.interval_s)
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                log.exception("Scheduler tick failed")
            self._stop.wait(self.interval_s)
        log.info("Scheduler stopped")


@dataclass
class Fleet:
    scheduler: FleetScheduler
    status: FleetStatus
    events: EventLog
    config: WatcherConfig


def build_fleet(
    config: WatcherConfig,
    settings: Settings,
    oracle: Oracle | None = None,
    runtime: Runtime | None = None,
    events: EventLog | None = None,
) -> Fleet:
    """Wire every configured container to shared oracle/runtime/store handles."""
    if oracle is None:
        oracle = SteamVersionOracle(
            api_key=config.steam_api_key,
            base_url=settings.steam_api_url,
            timeout_s=settings.oracle_timeout_s,
        )
    if runtime is None:
        runtime = DockerRuntime(make_client(config.connect_mode, settings.docker_url))
    if events is None:
        events = EventLog(settings.events_db_path)

    config.state_directory.mkdir(parents=True, exist_ok=True)
    store = StateStore(config.state_directory)
    status = FleetStatus()
    notifier = EmailNotifier(settings) if settings.enable_email else None

    reconcilers = [
        ContainerReconciler(d, store, oracle, runtime, events=events, status=status, notifier=notifier)
        for d in config.containers
    ]
    scheduler = FleetScheduler(reconcilers, config.check_interval_s, settings.max_workers)
    return Fleet(scheduler=scheduler, status=status, events=events, config=config)
