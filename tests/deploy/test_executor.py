# tests/deploy/test_executor.py
from __future__ import annotations

import pytest

from agentkeys.config.models import AgentKeysConfig, HostSpec
from agentkeys.deploy.executor import (
    CHANGED,
    FAILED,
    LOCALHOST,
    NOT_RUN,
    OK,
    PENDING,
    default_runner_factory,
    select_hosts,
    sync_hosts,
)
from agentkeys.keys.errors import FetchError, MalformedArtifactError
from agentkeys.keys.models import ImportOutcome
from agentkeys.observers.dispatcher import EventBus
from agentkeys.observers.events import HostSummary
from agentkeys.runners.base import CommandError
from agentkeys.utils.execution import ExecutionContext

K1 = "https://keys.example.test/K1.public"
K2 = "https://keys.example.test/K2.public"
CUR = "https://keys.example.test/CURRENT.public"


class MemRunner:
    def __init__(self, host):
        self.host = host
        self.files = {}
        self.dirs = set()
        self.closed = False
        self._n = 0

    def make_temp_dir(self, suffix):
        self._n += 1
        path = f"/tmp/{self.host}-{self._n}{suffix}"
        self.dirs.add(path)
        return path

    def remove_tree(self, path):
        self.dirs.discard(path)

    def read_bytes(self, path):
        return self.files[path]

    def write_bytes(self, path, data, mode=0o600):
        self.files[path] = data

    def close(self):
        self.closed = True


class StoreGpg:
    """Fake keyring backend; payloads are plain fingerprint strings."""

    def __init__(self, runner, stores):
        self.runner = runner
        self.stores = stores

    def check_presence(self, keyring, identifier):
        return identifier in self.stores.setdefault(self.runner.host, set())

    def normalize_to_binary(self, source, dest):
        data = self.runner.read_bytes(source)
        if not data:
            raise MalformedArtifactError(source)
        self.runner.write_bytes(dest, data)

    def extract_key(self, keyring, identifier, dest):
        self.runner.write_bytes(dest, identifier.encode())

    def import_key(self, keyring, source):
        fpr = self.runner.read_bytes(source).decode()
        store = self.stores.setdefault(self.runner.host, set())
        new = fpr not in store
        store.add(fpr)
        return ImportOutcome(processed=1, imported=int(new), unchanged=int(not new))


class FakeFetcher:
    def __init__(self, sources):
        self.sources = sources

    def fetch(self, url):
        data = self.sources[url]
        if isinstance(data, Exception):
            raise data
        return data


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def _cfg(**kw):
    data = {
        "keyring": {"keys": {"CURRENT": CUR, "K1": K1, "K2": K2}},
        "hosts": [
            {"hostname": "web-1", "address": "10.0.0.11"},
            {"hostname": "web-2", "address": "10.0.0.12"},
        ],
    }
    data.update(kw)
    return AgentKeysConfig.model_validate(data)


def _run(cfg, sources=None, stores=None, **kw):
    runners = {}
    stores = {} if stores is None else stores

    def runner_factory(host):
        runners[host.hostname] = MemRunner(host.hostname)
        return runners[host.hostname]

    sources = sources or {CUR: b"CUR", K1: b"K1", K2: b"K2"}
    reports = sync_hosts(
        cfg,
        runner_factory=runner_factory,
        backend_factory=lambda runner: StoreGpg(runner, stores),
        fetcher=FakeFetcher(sources),
        **kw,
    )
    return reports, runners, stores


def test_all_hosts_get_all_keys():
    reports, runners, stores = _run(_cfg())
    assert [r.host for r in reports] == ["web-1", "web-2"]
    for rep in reports:
        assert [o.status for o in rep.outcomes] == [CHANGED, CHANGED, CHANGED]
        assert not rep.failed
    assert stores == {"web-1": {"CUR", "K1", "K2"}, "web-2": {"CUR", "K1", "K2"}}
    assert all(r.closed for r in runners.values())
    assert all(r.dirs == set() for r in runners.values())


def test_second_run_reports_ok():
    stores = {}
    _run(_cfg(), stores=stores)
    reports, _, _ = _run(_cfg(), stores=stores)
    assert [o.status for o in reports[0].outcomes] == [OK, OK, OK]


def test_failed_record_does_not_stop_the_others():
    sources = {CUR: b"CUR", K1: FetchError("HTTP 503"), K2: b"K2"}
    reports, _, stores = _run(_cfg(), sources=sources)
    statuses = [(o.identifier, o.status) for o in reports[0].outcomes]
    assert statuses == [("CURRENT", CHANGED), ("K1", FAILED), ("K2", CHANGED)]
    assert "503" in reports[0].outcomes[1].error
    assert reports[0].failed
    assert stores["web-1"] == {"CUR", "K2"}


def test_fail_fast_marks_remaining_records_not_run():
    sources = {CUR: b"", K1: b"K1", K2: b"K2"}
    reports, _, _ = _run(_cfg(fail_fast=True), sources=sources)
    assert [o.status for o in reports[0].outcomes] == [FAILED, NOT_RUN, NOT_RUN]


def test_dry_run_marks_pending():
    stores = {"web-1": {"K1"}, "web-2": set()}
    reports, runners, _ = _run(_cfg(), stores=stores, ctx=ExecutionContext(dry_run=True))
    assert [o.status for o in reports[0].outcomes] == [PENDING, OK, PENDING]
    assert stores["web-1"] == {"K1"}
    assert runners["web-1"]._n == 0


def test_no_hosts_targets_localhost():
    seen = []

    def runner_factory(host):
        seen.append(host)
        return MemRunner(host.hostname)

    cfg = _cfg(hosts=[])
    reports = sync_hosts(
        cfg,
        runner_factory=runner_factory,
        backend_factory=lambda runner: StoreGpg(runner, {}),
        fetcher=FakeFetcher({CUR: b"CUR", K1: b"K1", K2: b"K2"}),
    )
    assert seen == [LOCALHOST]
    assert reports[0].host == "localhost"


def test_connection_failure_is_a_host_error():
    def runner_factory(host):
        raise CommandError(f"cannot connect to {host.hostname}")

    cap = Capture()
    reports = sync_hosts(_cfg(), runner_factory=runner_factory, bus=EventBus([cap]))
    assert all(r.failed for r in reports)
    assert "cannot connect to web-1" in reports[0].error
    summaries = [e for e in cap.events if isinstance(e, HostSummary)]
    assert len(summaries) == 2
    assert all(s.failed == 1 for s in summaries)


@pytest.mark.parametrize(
    "version, failed, note",
    [
        ("6.14.1", True, None),
        ("7.50.0", False, "https://s3.amazonaws.com/ddagent-windows-stable/datadog-agent-7.50.0.msi"),
        (None, False, "no agent version pinned"),
    ],
)
def test_windows_hosts_only_validate_version(version, failed, note):
    cfg = _cfg(
        agent={"version": version},
        hosts=[{"hostname": "win-1", "address": "10.0.0.20", "os_family": "windows"}],
    )
    reports, runners, _ = _run(cfg)
    rep = reports[0]
    assert rep.skipped
    assert rep.failed is failed
    assert runners == {}
    if note:
        assert rep.note == note
    else:
        assert "6.14.2" in rep.error


def test_other_families_are_skipped():
    cfg = _cfg(hosts=[{"hostname": "rh-1", "address": "10.0.0.30", "os_family": "redhat"}])
    reports, runners, _ = _run(cfg)
    assert reports[0].skipped and not reports[0].failed
    assert runners == {}


def test_select_hosts_filters_and_rejects_unknown():
    cfg = _cfg()
    assert [h.hostname for h in select_hosts(cfg, ["web-2"])] == ["web-2"]
    with pytest.raises(ValueError, match="web-9"):
        select_hosts(cfg, ["web-9"])
    assert select_hosts(_cfg(hosts=[])) == [LOCALHOST]
    assert isinstance(LOCALHOST, HostSpec)


def test_unreadable_private_key_fails_only_that_host(tmp_path):
    cfg = _cfg(hosts=[
        {"hostname": "good", "address": "localhost", "connection": "local"},
        {"hostname": "bad", "address": "10.0.0.99", "pkey_path": str(tmp_path / "missing_key")},
    ])
    stores = {}
    reports = sync_hosts(
        cfg,
        runner_factory=default_runner_factory,
        backend_factory=lambda runner: StoreGpg(runner, stores),
        fetcher=FakeFetcher({CUR: b"CUR", K1: b"K1", K2: b"K2"}),
    )
    good, bad = reports
    assert not good.failed
    assert [o.status for o in good.outcomes] == [CHANGED, CHANGED, CHANGED]
    assert bad.failed
    assert "missing_key" in bad.error
    assert stores == {"good": {"CUR", "K1", "K2"}}
