import threading

from vdr.config import WatcherConfig
from vdr.models import ContainerDescriptor
from vdr.reconciler import ContainerReconciler, OutcomeKind
from vdr.scheduler import FleetScheduler, build_fleet
from vdr.settings import Settings
from vdr.state_store import ReconciliationState


def _fleet(names, store, oracle, runtime):
    recs = []
    for i, name in enumerate(names):
        desc = ContainerDescriptor(name=name, catalog_id=i, action="restart")
        recs.append(ContainerReconciler(desc, store, oracle, runtime))
    return recs


def test_one_failure_does_not_block_others(store, oracle, runtime):
    recs = _fleet(["a", "b", "c"], store, oracle, runtime)
    for i, name in enumerate(["a", "b", "c"]):
        store.save(name, ReconciliationState(current_version=1))
        oracle.versions[i] = 2
        runtime.running[name] = True
    runtime.running["b"] = False

    class Boom(Exception):
        pass

    def crash():
        raise Boom("unexpected")

    recs[0].step = crash
    results = FleetScheduler(recs, interval_s=60).tick()

    assert results["a"].kind is OutcomeKind.FAILED
    assert results["b"].kind is OutcomeKind.SKIPPED
    assert results["c"].kind is OutcomeKind.UPDATED


def test_excluded_containers_are_not_ticked(store, oracle, runtime):
    recs = _fleet(["a", "b"], store, oracle, runtime)
    oracle.versions.update({0: 1, 1: 1})
    recs[0].excluded = True

    results = FleetScheduler(recs, interval_s=60).tick()

    assert list(results) == ["b"]


def test_concurrent_tick_reconciles_all(store, oracle, runtime):
    names = [f"svc{i}" for i in range(8)]
    recs = _fleet(names, store, oracle, runtime)
    for i in range(len(names)):
        oracle.versions[i] = "1"

    results = FleetScheduler(recs, interval_s=60, max_workers=4).tick()

    assert set(results) == set(names)
    assert all(o.kind is OutcomeKind.UP_TO_DATE for o in results.values())
    assert sorted(n for n, _ in store.saves) == sorted(names)


def test_start_runs_first_tick_and_stop_is_graceful(store, oracle, runtime):
    recs = _fleet(["a"], store, oracle, runtime)
    oracle.versions[0] = "1"
    ticked = threading.Event()

    sched = FleetScheduler(recs, interval_s=3600)
    real_tick = sched.tick

    def tick():
        out = real_tick()
        ticked.set()
        return out

    sched.tick = tick
    sched.start()
    assert ticked.wait(5)
    assert sched.running

    sched.stop(timeout=5)
    assert not sched.running
    assert store.load("a").current_version == "1"


def test_build_fleet_wires_containers(tmp_path, oracle, runtime, events):
    config = WatcherConfig(
        containers=[
            ContainerDescriptor(name="a", catalog_id=1, action="restart"),
            ContainerDescriptor(name="b", catalog_id=2, action={"pull": {"image": "x"}}),
        ],
        steam_api_key="k",
        check_interval_s=120,
        state_directory=tmp_path / "state",
        connect_mode="unix_socket",
        source=tmp_path / "config.yml",
    )
    fleet = build_fleet(config, Settings(), oracle=oracle, runtime=runtime, events=events)

    assert (tmp_path / "state").is_dir()
    assert fleet.scheduler.interval_s == 120
    assert [r.name for r in fleet.scheduler.reconcilers] == ["a", "b"]
    assert fleet.scheduler.get("b").descriptor.action.kind == "pull"
    assert [s.phase for s in fleet.status.list()] == ["pending", "pending"]
