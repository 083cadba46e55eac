import pytest

from corerad.change import Change

NAMES = [
    "link up",
    "link down",
    "link testing",
    "link unknown",
    "link dormant",
    "link not present",
    "link lower layer down",
]

MEMBERS = [
    Change.LINK_UP,
    Change.LINK_DOWN,
    Change.LINK_TESTING,
    Change.LINK_UNKNOWN,
    Change.LINK_DORMANT,
    Change.LINK_NOT_PRESENT,
    Change.LINK_LOWER_LAYER_DOWN,
]


@pytest.mark.parametrize("bit, want", list(enumerate(NAMES)))
def test_single_change_strings(bit, want):
    assert str(Change(1 << bit)) == want


def test_link_any_string():
    assert str(Change(0b1111111)) == "link ANY"
    assert Change(0b1111111) == Change.LINK_ANY


def test_zero_string():
    assert str(Change(0)) == "0"


def test_combined_string_joins_names_in_bit_order():
    combined = Change(int(Change.LINK_DOWN) | int(Change.LINK_UP))
    assert str(combined) == "|".join(["link up", "link down"])


@pytest.mark.parametrize("bit", range(len(MEMBERS)))
def test_bits_are_distinct_powers_of_two(bit):
    assert Change(1 << bit) == MEMBERS[bit]


def test_link_any_covers_every_change():
    any_change = Change(int(Change.LINK_ANY))
    total = 0
    for bit in range(len(MEMBERS)):
        change = Change(1 << bit)
        assert any_change & change == change
        total |= int(change)
    assert int(any_change) == total


def test_all_but_one_is_not_any():
    partial = Change(int(Change.LINK_ANY) & ~int(Change.LINK_UP))
    assert str(partial).split("|") == NAMES[1:]