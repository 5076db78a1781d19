"""Ordered execution of phases against a cluster configuration."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

from .analytics import AnalyticsPhase

log = logging.getLogger(__name__)

HostFunc = Callable[[Any], None]


class PhaseError(Exception):
    """Raised when a phase can't do its work."""


class ParallelError(PhaseError):
    """Raised when a function failed on one or more hosts."""

    def __init__(self, failures: list[tuple[Any, BaseException]]) -> None:
        self.failures = failures
        details = "\n".join(f" - {host}: {err}" for host, err in failures)
        super().__init__(f"failed on {len(failures)} hosts:\n{details}")


class Phase(Protocol):
    """The minimum a phase provides; other hooks are optional."""

    def title(self) -> str: ...

    def run(self) -> None: ...


def _hook(obj: object, name: str) -> Callable[..., Any] | None:
    attr = getattr(obj, name, None)
    return attr if callable(attr) else None


def _cluster_id(config: object) -> str:
    spec = getattr(config, "spec", None)
    k0s = getattr(spec, "k0s", None)
    metadata = getattr(k0s, "metadata", None)
    return getattr(metadata, "cluster_id", "") or ""


def _run_on_hosts(hosts: Iterable[Any], funcs: tuple[HostFunc, ...], limit: int) -> None:
    """Run the functions in order on every host, at most ``limit`` hosts at a time."""
    host_list = list(hosts)
    if not host_list:
        return

    def run_host(host: Any) -> None:
        for func in funcs:
            func(host)

    workers = limit if limit > 0 else len(host_list)
    with ThreadPoolExecutor(max_workers=min(workers, len(host_list))) as pool:
        futures = [(host, pool.submit(run_host, host)) for host in host_list]

    failures = [(host, fut.exception()) for host, fut in futures if fut.exception() is not None]
    if failures:
        raise ParallelError(failures)


class Manager:
    """Runs the added phases in order and cleans up after a failure."""

    def __init__(self, config: Any, concurrency: int = 0, concurrent_uploads: int = 0) -> None:
        self.config = config
        self.concurrency = concurrency
        self.concurrent_uploads = concurrent_uploads
        self.phases: list[Phase] = []

    def add_phase(self, *args: Phase) -> None:
        self.phases.extend(args)

    def run(self) -> None:
        """Run all phases; the first failure stops the run and is raised."""
        ran: list[Phase] = []
        result: BaseException | None = None
        try:
            for phase in self.phases:
                title = phase.title()

                if set_manager := _hook(phase, "set_manager"):
                    set_manager(self)

                if prepare := _hook(phase, "prepare"):
                    log.debug("Preparing phase '%s'", title)
                    prepare(self.config)

                if (should_run := _hook(phase, "should_run")) and not should_run():
                    continue

                if before := _hook(phase, "before"):
                    before(title)

                if set_prop := _hook(phase, "set_prop"):
                    cluster_id = _cluster_id(self.config)
                    if cluster_id:
                        set_prop("clusterID", cluster_id)

                log.info("==> Running phase: %s", title)
                try:
                    phase.run()
                except Exception as err:
                    result = err
                ran.append(phase)

                if after := _hook(phase, "after"):
                    after(result)

                if result is not None:
                    raise result
        finally:
            if result is not None:
                for phase in ran:
                    if clean_up := _hook(phase, "clean_up"):
                        log.info("* Running clean-up for phase: %s", phase.title())
                        clean_up()


class GenericPhase(AnalyticsPhase):
    """A phase that keeps the config it is prepared with and reports analytics."""

    def __init__(self, config: Any = None) -> None:
        super().__init__()
        self.config = config
        self.manager: Manager | None = None

    def prepare(self, config: Any) -> None:
        self.config = config

    def set_manager(self, manager: Manager) -> None:
        self.manager = manager

    def parallel_do(self, hosts: Iterable[Any], *args: HostFunc) -> None:
        """Run the functions on the hosts, limited by the manager's concurrency."""
        limit = self.manager.concurrency if self.manager else 0
        _run_on_hosts(hosts, args, limit)

    def parallel_do_upload(self, hosts: Iterable[Any], *args: HostFunc) -> None:
        """Run the functions on the hosts, limited by the concurrent upload count."""
        if self.manager is None or self.manager.concurrency == 0:
            limit = 0
        else:
            limit = self.manager.concurrent_uploads
        _run_on_hosts(hosts, args, limit)


class Unlock(GenericPhase):
    """Releases the exclusive host lock by calling the lock's cancel function."""

    def __init__(self, cancel: Callable[[], None] | None = None, config: Any = None) -> None:
        super().__init__(config)
        self.cancel = cancel

    def prepare(self, config: Any) -> None:
        self.config = config
        if self.cancel is None:
            log.debug("no cancel function given for the unlock phase")

    def title(self) -> str:
        return "Release exclusive host lock"

    def run(self) -> None:
        if self.cancel is None:
            log.critical("cancel function not defined")
            raise PhaseError("cancel function not defined")
        self.cancel()