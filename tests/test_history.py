import pytest

from version_plane.commits import CommitEngine
from version_plane.errors import CorruptObject, NotFound
from version_plane.history import HistoryWalker
from version_plane.impl.memory import MemoryObjectStore, MemoryRefStore
from version_plane.objects import Tree

from tests.providers import IDENT, Ticker


class FixedClock:
    """Returns the queued timestamps in order."""

    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        return self.times.pop(0)


def make_engine(clock=None):
    objects = MemoryObjectStore()
    engine = CommitEngine(objects, MemoryRefStore(), clock or Ticker())
    return engine, HistoryWalker(objects), objects.put_tree(Tree())


def test_linear_history_newest_first():
    engine, history, tree = make_engine()
    first, _ = engine.write_commit(tree, [], "first", IDENT)
    second, _ = engine.write_commit(tree, [first], "second", IDENT)
    third, _ = engine.write_commit(tree, [second], "third", IDENT)

    assert [oid for oid, _ in history.list_commits(third)] == [third, second, first]


def test_merge_history_interleaves_by_time():
    engine, history, tree = make_engine()
    root, _ = engine.write_commit(tree, [], "root", IDENT)
    left1, _ = engine.write_commit(tree, [root], "left1", IDENT)
    right1, _ = engine.write_commit(tree, [root], "right1", IDENT)
    left2, _ = engine.write_commit(tree, [left1], "left2", IDENT)
    merge, _ = engine.write_commit(tree, [left2, right1], "merge", IDENT)

    walked = [commit.message for _, commit in history.list_commits(merge)]

    assert walked == ["merge", "left2", "right1", "left1", "root"]


def test_parents_never_precede_children_with_skewed_clock():
    # the child is stamped earlier than its parent
    engine, history, tree = make_engine(FixedClock(100, 300, 200, 50, 400))
    root, _ = engine.write_commit(tree, [], "root", IDENT)
    side, _ = engine.write_commit(tree, [root], "side", IDENT)
    main, _ = engine.write_commit(tree, [root], "main", IDENT)
    main_child, _ = engine.write_commit(tree, [main], "main child", IDENT)
    merge, _ = engine.write_commit(tree, [main_child, side], "merge", IDENT)

    walked = [commit.message for _, commit in history.list_commits(merge)]

    assert walked == ["merge", "side", "main child", "main", "root"]
    assert walked.index("main child") < walked.index("main")
    assert walked[-1] == "root"


def test_each_commit_is_visited_once():
    engine, history, tree = make_engine()
    root, _ = engine.write_commit(tree, [], "root", IDENT)
    a, _ = engine.write_commit(tree, [root], "a", IDENT)
    b, _ = engine.write_commit(tree, [root], "b", IDENT)
    merge, _ = engine.write_commit(tree, [a, b], "merge", IDENT)

    walked = [oid for oid, _ in history.list_commits(merge)]

    assert len(walked) == len(set(walked)) == 4


def test_merge_base_of_diverged_branches():
    engine, history, tree = make_engine()
    root, _ = engine.write_commit(tree, [], "root", IDENT)
    fork, _ = engine.write_commit(tree, [root], "fork", IDENT)
    left, _ = engine.write_commit(tree, [fork], "left", IDENT)
    right, _ = engine.write_commit(tree, [fork], "right", IDENT)

    assert history.find_merge_base(left, right)[0] == fork
    assert history.find_merge_base(right, left)[0] == fork
    assert history.find_merge_base(left, fork)[0] == fork


def test_criss_cross_base_follows_second_walk():
    engine, history, tree = make_engine()
    root, _ = engine.write_commit(tree, [], "root", IDENT)
    x, _ = engine.write_commit(tree, [root], "x", IDENT)
    y, _ = engine.write_commit(tree, [root], "y", IDENT)
    # each side merges the other's commit: both x and y are common ancestors
    left, _ = engine.write_commit(tree, [x, y], "left", IDENT)
    right, _ = engine.write_commit(tree, [y, x], "right", IDENT)

    # y is newer than x, so it is reached first whichever side is walked
    assert history.find_merge_base(left, right)[0] == y
    assert history.find_merge_base(right, left)[0] == y


def test_unrelated_histories_have_no_base():
    engine, history, tree = make_engine()
    one, _ = engine.write_commit(tree, [], "one", IDENT)
    other, _ = engine.write_commit(tree, [], "other", IDENT)

    with pytest.raises(NotFound):
        history.find_merge_base(one, other)


def test_is_ancestor():
    engine, history, tree = make_engine()
    root, _ = engine.write_commit(tree, [], "root", IDENT)
    child, _ = engine.write_commit(tree, [root], "child", IDENT)

    assert history.is_ancestor(root, child)
    assert history.is_ancestor(child, child)
    assert not history.is_ancestor(child, root)


def test_missing_parent_is_corrupt():
    engine, history, tree = make_engine()
    root, _ = engine.write_commit(tree, [], "root", IDENT)
    child, _ = engine.write_commit(tree, [root], "child", IDENT)

    del history.objects.data[root]

    with pytest.raises(CorruptObject):
        list(history.list_commits(child))
    with pytest.raises(CorruptObject):
        history.load_parent(root)


def test_missing_start_is_not_found():
    engine, history, tree = make_engine()
    root, _ = engine.write_commit(tree, [], "root", IDENT)

    del history.objects.data[root]

    with pytest.raises(NotFound):
        list(history.list_commits(root))
