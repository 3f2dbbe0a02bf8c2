import threading

import pytest

from version_plane.base import RefUpdateStatus
from version_plane.errors import NotFound
from version_plane.impl.memory import MemoryRefStore
from version_plane.objects import ObjectKind, hash_object

A = hash_object(ObjectKind.COMMIT, b"a")
B = hash_object(ObjectKind.COMMIT, b"b")
C = hash_object(ObjectKind.COMMIT, b"c")


def test_create_from_absent(repo):
    result = repo.refs.compare_and_swap("refs/heads/main", None, A)

    assert result.ok
    assert result.status == RefUpdateStatus.FAST_FORWARD
    assert result.old is None
    assert repo.refs.read("refs/heads/main") == A


def test_update_with_matching_expected(repo):
    repo.refs.compare_and_swap("refs/heads/main", None, A)

    result = repo.refs.compare_and_swap("refs/heads/main", A, B)

    assert result.status == RefUpdateStatus.UPDATED
    assert result.old == A
    assert result.new == B
    assert repo.refs.read("refs/heads/main") == B


def test_stale_expected_is_rejected(repo):
    repo.refs.compare_and_swap("refs/heads/main", None, A)
    repo.refs.compare_and_swap("refs/heads/main", A, B)

    result = repo.refs.compare_and_swap("refs/heads/main", A, C)

    assert not result.ok
    assert result.status == RefUpdateStatus.REJECTED
    assert result.reason == "ref moved"
    assert repo.refs.read("refs/heads/main") == B


def test_create_over_existing_is_rejected(repo):
    repo.refs.compare_and_swap("refs/heads/main", None, A)

    result = repo.refs.compare_and_swap("refs/heads/main", None, B)

    assert result.status == RefUpdateStatus.REJECTED
    assert result.reason == "ref already exists"
    assert repo.refs.read("refs/heads/main") == A


def test_update_of_absent_is_rejected(repo):
    result = repo.refs.compare_and_swap("refs/heads/main", A, B)

    assert result.status == RefUpdateStatus.REJECTED
    assert result.reason == "ref does not exist"
    assert repo.refs.read("refs/heads/main") is None


def test_delete(repo):
    repo.refs.compare_and_swap("refs/heads/gone", None, A)
    repo.refs.delete("refs/heads/gone")
    assert repo.refs.read("refs/heads/gone") is None

    with pytest.raises(NotFound):
        repo.refs.delete("refs/heads/gone")


def test_list_refs_by_prefix(repo):
    for name in ["refs/heads/b", "refs/heads/a", "refs/tags/v1", "refs/heads_like"]:
        repo.refs.compare_and_swap(name, None, A)

    assert repo.refs.list_refs("refs/heads/") == ["refs/heads/a", "refs/heads/b"]
    assert repo.refs.list_refs() == [
        "refs/heads/a",
        "refs/heads/b",
        "refs/heads_like",
        "refs/tags/v1",
    ]


def test_racing_writers_only_one_wins():
    refs = MemoryRefStore()
    refs.compare_and_swap("refs/heads/main", None, A)

    writers = 8
    barrier = threading.Barrier(writers)
    results = []

    def race(i):
        barrier.wait()
        results.append(
            refs.compare_and_swap("refs/heads/main", A, hash_object(ObjectKind.COMMIT, bytes([i])))
        )

    threads = [threading.Thread(target=race, args=(i,)) for i in range(writers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [result for result in results if result.ok]
    assert len(winners) == 1
    assert refs.read("refs/heads/main") == winners[0].new
