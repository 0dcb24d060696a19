import random

import pytest

from delve.dungeon.cells import Rect
from delve.dungeon.errors import StairReciprocityFailure
from delve.dungeon.layout import LevelDraft
from delve.dungeon.stairs import pick_stair_rooms, place_stairs, validate_stairs


def _draft(index, rooms):
    return LevelDraft(index, 40, 40, list(rooms))


def _corners():
    return [Rect(1, 1, 4, 4), Rect(30, 1, 4, 4), Rect(1, 30, 4, 4), Rect(30, 30, 4, 4), Rect(16, 16, 4, 4)]


def test_farthest_point_selection_spreads_stairs():
    draft = _draft(0, _corners())
    picked = pick_stair_rooms(draft, 3, draft.rooms[0].centroid)
    # Farthest from room 0 is the opposite corner, then the remaining corners
    assert picked[0] == 3
    assert set(picked[1:]) == {1, 2}


def test_stairs_are_reciprocal_and_inside_rooms():
    upper, lower = _draft(0, _corners()), _draft(-1, _corners())
    next_n = place_stairs(upper, lower, random.Random(3), 0)
    assert 1 <= len(upper.stairs) <= 3
    assert len(upper.stairs) == len(lower.stairs)
    assert next_n == 2 * len(upper.stairs)
    validate_stairs([upper, lower])
    for down in upper.stairs:
        up = next(s for s in lower.stairs if s.id == down.counterpart_id)
        assert up.counterpart_id == down.id
        # Same cell when a lower room contains it
        assert up.position == down.position
        assert down.direction in ("down", "spiral")
        assert up.direction == ("spiral" if down.direction == "spiral" else "up")


def test_counterpart_lands_in_nearest_room_when_cell_is_rock():
    upper = _draft(0, [Rect(10, 10, 4, 4)])
    lower = _draft(-1, [Rect(30, 30, 3, 3), Rect(2, 2, 3, 3)])
    place_stairs(upper, lower, random.Random(1), 0)
    up = lower.stairs[0]
    assert up.room == 1
    assert lower.rooms[1].contains(up.position)


def test_stair_count_bounded_by_rooms():
    upper, lower = _draft(0, [Rect(2, 2, 3, 3)]), _draft(-1, _corners())
    for seed in range(10):
        upper.stairs.clear()
        lower.stairs.clear()
        place_stairs(upper, lower, random.Random(seed), 0)
        assert len(upper.stairs) == 1


def test_missing_pair_link_fails_validation():
    upper, lower = _draft(0, _corners()), _draft(-1, _corners())
    with pytest.raises(StairReciprocityFailure):
        validate_stairs([upper, lower])


def test_broken_counterpart_fails_validation():
    upper, lower = _draft(0, _corners()), _draft(-1, _corners())
    place_stairs(upper, lower, random.Random(0), 0)
    lower.stairs[0].counterpart_id = "stair-999"
    with pytest.raises(StairReciprocityFailure):
        validate_stairs([upper, lower])
