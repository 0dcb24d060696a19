import random

from delve.dungeon.cells import Rect
from delve.dungeon.features import assign_features, roll_feature
from delve.dungeon.layout import ENTRY, EXIT, SPECIAL, LevelDraft
from delve.dungeon.profiles import LAYOUT_PROFILES, get_layout_profile


def test_theme_keywords_resolve_dungeon_type():
    assert get_layout_profile('Crystal Grotto')[0] == 'cave'
    assert get_layout_profile('old keep')[0] == 'fortress'
    assert get_layout_profile(None)[0] == 'dungeon'
    assert get_layout_profile('something else')[0] == 'dungeon'


def test_entry_and_exit_rooms_get_no_features():
    rooms = [Rect(0, 0, 4, 4), Rect(10, 0, 4, 4), Rect(20, 0, 10, 10)]
    draft = LevelDraft(0, 40, 40, rooms)
    draft.room_types[0] = ENTRY
    draft.room_types[2] = EXIT
    metrics = {}
    assign_features(draft, LAYOUT_PROFILES['temple'], 'medium', random.Random(1), metrics)
    assert draft.room_features[0] == [] and draft.room_features[2] == []
    assert len(draft.room_features[1]) == 1
    assert sum(metrics.values()) == 1


def test_treasure_and_altar_rooms_become_special():
    rooms = [Rect(x * 6, 0, 4, 4) for x in range(30)]
    draft = LevelDraft(0, 200, 10, rooms)
    assign_features(draft, LAYOUT_PROFILES['temple'], 'medium', random.Random(4))
    for kind, feats in zip(draft.room_types, draft.room_features):
        assert (kind == SPECIAL) == bool({'treasure', 'altar'} & set(feats))


def test_harder_difficulty_rolls_more_traps():
    profile = LAYOUT_PROFILES['fortress']
    easy = sum(roll_feature(profile, 'easy', random.Random(s)) == 'trap' for s in range(2000))
    deadly = sum(roll_feature(profile, 'deadly', random.Random(s)) == 'trap' for s in range(2000))
    assert deadly > easy
