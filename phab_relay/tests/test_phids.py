from phab_relay.phids import is_resolvable


def test_matches_allowed_type_prefix() -> None:
    assert is_resolvable("PHID-TASK-abc123", ["USER", "TASK"])
    assert is_resolvable("PHID-USER-xyz", ["USER", "TASK"])


def test_rejects_unlisted_type_and_non_phid_tokens() -> None:
    allowed = ["TASK"]
    assert not is_resolvable("PHID-USER-xyz", allowed)
    assert not is_resolvable("PHID-TASKX-abc", allowed)
    assert not is_resolvable("TASK-abc", allowed)
    assert not is_resolvable("phid-TASK-abc", allowed)
    assert not is_resolvable("", allowed)


def test_result_does_not_depend_on_allow_list_order() -> None:
    tokens = ["PHID-TASK-1", "PHID-USER-2", "PHID-PROJ-3", "PHID-CMIT-4"]
    forward = ["USER", "TASK", "PROJ"]
    backward = list(reversed(forward))
    assert [is_resolvable(t, forward) for t in tokens] == [is_resolvable(t, backward) for t in tokens]
    assert [is_resolvable(t, forward) for t in tokens] == [True, True, True, False]


def test_empty_allow_list_resolves_nothing() -> None:
    assert not is_resolvable("PHID-TASK-1", [])
