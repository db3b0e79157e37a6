"""Tests for the repository handle registry."""

import asyncio
import threading

import pytest
from git import Repo

from services.errors import GitSubprocessError
from services.repository_registry import RepositoryHandle, RepositoryRegistry


def test_get_returns_same_handle(tmp_path):
    registry = RepositoryRegistry(tmp_path)

    first = registry.get("alpha")
    second = registry.get("alpha")

    assert first is second
    assert first.path == tmp_path / "alpha"
    assert len(registry) == 1


def test_distinct_names_get_distinct_handles(tmp_path):
    registry = RepositoryRegistry(tmp_path)

    assert registry.get("alpha") is not registry.get("beta")
    assert len(registry) == 2


def test_fresh_registries_do_not_share_handles(tmp_path):
    assert RepositoryRegistry(tmp_path).get("alpha") is not RepositoryRegistry(tmp_path).get("alpha")


def test_concurrent_first_access_creates_one_handle(tmp_path):
    registry = RepositoryRegistry(tmp_path)
    results: list[RepositoryHandle] = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(registry.get("alpha"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8
    assert all(handle is results[0] for handle in results)


def test_discard_forgets_handle(tmp_path):
    registry = RepositoryRegistry(tmp_path)
    handle = registry.get("alpha")

    registry.discard("alpha")

    assert "alpha" not in registry
    assert registry.get("alpha") is not handle


def test_run_executes_git_in_repository(tmp_path):
    Repo.init(tmp_path / "alpha")
    registry = RepositoryRegistry(tmp_path)

    output = asyncio.run(registry.get("alpha").run("rev-parse", "--is-inside-work-tree"))

    assert output == "true"


def test_run_wraps_git_failures(tmp_path):
    (tmp_path / "plain").mkdir()
    registry = RepositoryRegistry(tmp_path)

    with pytest.raises(GitSubprocessError, match="plain: git log failed"):
        asyncio.run(registry.get("plain").run("log"))


def test_runs_are_serialised_per_handle(tmp_path):
    Repo.init(tmp_path / "alpha")
    handle = RepositoryRegistry(tmp_path).get("alpha")
    active = 0
    peak = 0
    lock = threading.Lock()
    original = handle._execute

    def tracking_execute(command, args, extended):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        try:
            return original(command, args, extended)
        finally:
            with lock:
                active -= 1

    handle._execute = tracking_execute

    async def run_many():
        await asyncio.gather(*(handle.run("status", "--short") for _ in range(6)))

    asyncio.run(run_many())

    assert peak == 1


def test_run_replaces_undecodable_bytes(tmp_path):
    repo = Repo.init(tmp_path / "alpha")
    (tmp_path / "alpha" / "a.c").write_bytes(b"/* caf\xe9 */\n")
    repo.index.add(["a.c"])
    registry = RepositoryRegistry(tmp_path)

    output = asyncio.run(registry.get("alpha").run("diff", "--cached", "--no-color"))

    assert "+/* caf\ufffd */" in output
    assert output.encode("utf-8")


def test_run_failure_keeps_git_stderr(tmp_path):
    (tmp_path / "plain").mkdir()
    registry = RepositoryRegistry(tmp_path)

    with pytest.raises(GitSubprocessError) as excinfo:
        asyncio.run(registry.get("plain").run("log"))

    assert "not a git repository" in excinfo.value.stderr
