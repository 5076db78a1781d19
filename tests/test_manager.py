import threading
import time
from types import SimpleNamespace

import pytest

from k0sctl.manager import GenericPhase, Manager, ParallelError, PhaseError, Unlock


def make_config(cluster_id=""):
    return SimpleNamespace(
        spec=SimpleNamespace(k0s=SimpleNamespace(metadata=SimpleNamespace(cluster_id=cluster_id)))
    )


class ConditionalPhase:
    def __init__(self):
        self.should_run_called = False
        self.run_called = False

    def title(self):
        return "conditional phase"

    def should_run(self):
        self.should_run_called = True
        return False

    def run(self):
        self.run_called = True


def test_conditional_phase():
    m = Manager(make_config())
    p = ConditionalPhase()
    m.add_phase(p)
    m.run()
    assert p.run_called is False
    assert p.should_run_called is True


class ConfigPhase:
    def __init__(self):
        self.received_config = False

    def title(self):
        return "config phase"

    def prepare(self, config):
        self.received_config = config is not None

    def run(self):
        pass


def test_config_phase():
    m = Manager(make_config())
    p = ConfigPhase()
    m.add_phase(p)
    m.run()
    assert p.received_config is True


class HookedPhase:
    def __init__(self):
        self.before_called = False
        self.after_called = False
        self.err = None

    def title(self):
        return "hooked phase"

    def before(self, _title):
        self.before_called = True

    def after(self, err):
        self.after_called = True
        self.err = err

    def run(self):
        raise RuntimeError("run failed")


def test_hooked_phase():
    m = Manager(make_config())
    p = HookedPhase()
    m.add_phase(p)
    with pytest.raises(RuntimeError):
        m.run()
    assert p.before_called is True
    assert p.after_called is True
    assert str(p.err) == "run failed"


class RecordingPhase:
    def __init__(self, name, log, fail=False, fail_prepare=False):
        self.name = name
        self.log = log
        self.fail = fail
        self.fail_prepare = fail_prepare
        self.cleaned = False

    def title(self):
        return self.name

    def prepare(self, config):
        if self.fail_prepare:
            raise PhaseError("prepare failed")

    def run(self):
        self.log.append(self.name)
        if self.fail:
            raise RuntimeError(f"{self.name} failed")

    def clean_up(self):
        self.cleaned = True


def test_phases_run_in_order():
    order = []
    m = Manager(make_config())
    m.add_phase(RecordingPhase("a", order), RecordingPhase("b", order))
    m.add_phase(RecordingPhase("c", order))
    m.run()
    assert order == ["a", "b", "c"]


def test_failure_stops_and_cleans_up_ran_phases():
    order = []
    first = RecordingPhase("a", order)
    failing = RecordingPhase("b", order, fail=True)
    never = RecordingPhase("c", order)
    m = Manager(make_config())
    m.add_phase(first, failing, never)
    with pytest.raises(RuntimeError, match="b failed"):
        m.run()
    assert order == ["a", "b"]
    assert first.cleaned is True
    assert failing.cleaned is True
    assert never.cleaned is False


def test_prepare_failure_does_not_clean_up():
    order = []
    first = RecordingPhase("a", order)
    broken = RecordingPhase("b", order, fail_prepare=True)
    m = Manager(make_config())
    m.add_phase(first, broken)
    with pytest.raises(PhaseError, match="prepare failed"):
        m.run()
    assert order == ["a"]
    assert first.cleaned is False


class TitledPhase(GenericPhase):
    def __init__(self):
        super().__init__()
        self.seen_manager = None

    def title(self):
        return "titled"

    def run(self):
        self.seen_manager = self.manager


def test_generic_phase_gets_manager_config_and_cluster_id():
    config = make_config("cluster-1")
    m = Manager(config)
    p = TitledPhase()
    m.add_phase(p)
    m.run()
    assert p.seen_manager is m
    assert p.config is config
    assert p.props["clusterID"] == "cluster-1"
    assert p.props["name"] == "titled"


def test_generic_phase_without_cluster_id_has_no_prop():
    m = Manager(make_config())
    p = TitledPhase()
    m.add_phase(p)
    m.run()
    assert "clusterID" not in p.props


def test_parallel_do_runs_all_functions_on_all_hosts():
    phase = GenericPhase()
    phase.set_manager(Manager(make_config(), concurrency=2))
    seen = []
    lock = threading.Lock()

    def first(h):
        with lock:
            seen.append(("first", h))

    def second(h):
        with lock:
            seen.append(("second", h))

    result = phase.parallel_do(["h1", "h2", "h3"], first, second)
    assert result is None
    assert sorted(seen) == sorted(
        [(f, h) for f in ("first", "second") for h in ("h1", "h2", "h3")]
    )


def test_parallel_do_respects_concurrency():
    phase = GenericPhase()
    phase.set_manager(Manager(make_config(), concurrency=2))
    active = 0
    peak = 0
    done = []
    lock = threading.Lock()

    def work(h):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
            done.append(h)

    result = phase.parallel_do(range(6), work)
    assert result is None
    assert sorted(done) == list(range(6))
    assert 1 <= peak <= 2


def test_parallel_do_upload_uses_upload_limit():
    phase = GenericPhase()
    phase.set_manager(Manager(make_config(), concurrency=10, concurrent_uploads=1))
    active = 0
    peak = 0
    done = []
    lock = threading.Lock()

    def work(h):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
            done.append(h)

    result = phase.parallel_do_upload(range(4), work)
    assert result is None
    assert sorted(done) == list(range(4))
    assert peak == 1


def test_parallel_do_collects_failures():
    phase = GenericPhase()
    phase.set_manager(Manager(make_config()))

    def work(h):
        if h in ("bad1", "bad2"):
            raise ValueError(f"broken {h}")

    with pytest.raises(ParallelError) as excinfo:
        phase.parallel_do(["ok", "bad1", "bad2"], work)
    assert sorted(h for h, _ in excinfo.value.failures) == ["bad1", "bad2"]


def test_unlock_calls_cancel():
    calls = []
    m = Manager(make_config())
    p = Unlock(cancel=lambda: calls.append("cancel"))
    m.add_phase(p)
    m.run()
    assert calls == ["cancel"]
    assert p.title() == "Release exclusive host lock"


def test_unlock_without_cancel_fails():
    m = Manager(make_config())
    m.add_phase(Unlock())
    with pytest.raises(PhaseError, match="cancel function not defined"):
        m.run()