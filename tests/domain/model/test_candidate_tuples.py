from __future__ import annotations

import pytest

from xdedupe.domain.model import CandidateTuple, format_member_ids, parse_member_ids


def test_from_member_ids_sorts_and_picks_lowest_survivor() -> None:
    candidate = CandidateTuple.from_member_ids([12, 5, 9, 5])

    assert candidate.survivor_id == 5
    assert candidate.member_ids == (5, 9, 12)
    assert candidate.member_count == 3
    assert candidate.is_merged is False
    assert candidate.others(9) == [5, 12]


def test_survivor_must_be_a_member() -> None:
    with pytest.raises(ValueError, match="not a member"):
        CandidateTuple(survivor_id=1, member_ids=(2, 3))


def test_duplicate_members_are_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        CandidateTuple(survivor_id=2, member_ids=(2, 2, 3))


def test_stored_member_count_must_match_member_ids() -> None:
    assert CandidateTuple(survivor_id=2, member_ids=(2, 3), member_count=2).member_count == 2

    with pytest.raises(ValueError, match="stores member_count 3 for 2 ids"):
        CandidateTuple(survivor_id=2, member_ids=(2, 3), member_count=3)


def test_empty_tuples_are_rejected() -> None:
    with pytest.raises(ValueError, match="at least one member"):
        CandidateTuple.from_member_ids([])


def test_member_id_strings_parse_sorted_and_unique() -> None:
    assert parse_member_ids("9,3, 7,3,") == (3, 7, 9)
    assert format_member_ids([9, 3, 7, 3]) == "3,7,9"
