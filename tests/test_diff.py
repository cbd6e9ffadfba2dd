from shared_config.services.config.diff import compute_change_batch, values_differ


def test_changed_and_added_keys():
    old = {"a": 1, "b": 2}
    new = {"a": 1, "b": 3, "c": 4}
    assert compute_change_batch(old, new) == frozenset({"b", "c"})


def test_removed_key_is_changed():
    assert compute_change_batch({"a": 1, "gone": "x"}, {"a": 1}) == frozenset({"gone"})


def test_identical_maps_give_empty_batch():
    config = {"vodDownload": True, "clipDownload": False, "quality": "1080p"}
    assert compute_change_batch(config, dict(config)) == frozenset()
    assert compute_change_batch({}, {}) == frozenset()


def test_batch_does_not_depend_on_direction():
    old = {"a": 1, "b": "x"}
    new = {"b": "y", "c": True}
    assert compute_change_batch(old, new) == compute_change_batch(new, old) == {"a", "b", "c"}


def test_bool_never_equals_number():
    assert values_differ(True, 1)
    assert values_differ(0, False)
    assert compute_change_batch({"flag": 1}, {"flag": True}) == {"flag"}


def test_equal_numbers_of_different_type_are_unchanged():
    assert not values_differ(1, 1.0)
    assert compute_change_batch({"volume": 5}, {"volume": 5.0}) == frozenset()
