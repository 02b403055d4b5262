import pytest

from models import MoodAnalysis
from mood_map import (
    VALID_GENRES, infer_acousticness, infer_danceability, infer_instrumentalness,
    infer_valence, map_energy, mood_to_search_parameters, normalize_genres,
)


@pytest.mark.parametrize("level,expected", [("low", 0.3), ("medium", 0.6), ("high", 0.9)])
def test_map_energy(level, expected):
    assert map_energy(level) == expected


def test_valence_neutral_without_keywords():
    assert infer_valence([], []) == 0.5
    assert infer_valence(["calm", "serene"], ["contemplative"]) == 0.5

def test_valence_all_positive():
    assert infer_valence(["happy", "joyful"], []) == 1.0

def test_valence_all_negative():
    assert infer_valence(["sad"], ["melancholic"]) == 0.0

def test_valence_mixed_is_ratio_of_hits():
    assert infer_valence(["happy", "sad"], ["melancholic"]) == pytest.approx(1 / 3)

def test_valence_is_case_insensitive():
    assert infer_valence(["HAPPY", "JoYfUl"], []) == 1.0

def test_valence_matches_substrings():
    assert infer_valence(["unhappy"], []) == 1.0
    assert infer_valence(["darkness"], []) == 0.0

def test_valence_entry_can_count_both_ways():
    # "bright" and "dark" both occur inside one entry
    assert infer_valence(["bright-dark"], []) == 0.5


def test_danceability_keyword_overrides_energy():
    assert infer_danceability(["dance"], "low") == 0.8
    assert infer_danceability(["Funky groove"], "medium") == 0.8

@pytest.mark.parametrize("level,expected", [("low", 0.3), ("medium", 0.5), ("high", 0.7)])
def test_danceability_falls_back_to_energy(level, expected):
    assert infer_danceability(["calm"], level) == expected


def test_acousticness_prefers_acoustic():
    assert infer_acousticness(["acoustic", "electronic"]) == 0.8

def test_acousticness_electronic():
    assert infer_acousticness(["Techno night"]) == 0.2

def test_acousticness_no_opinion():
    assert infer_acousticness(["calm"]) is None
    assert infer_acousticness([]) is None


def test_instrumentalness():
    assert infer_instrumentalness(["cinematic"]) == 0.7
    assert infer_instrumentalness(["vocal"]) is None


def test_normalize_aliases():
    assert "hip-hop" in normalize_genres(["hip hop"])
    assert "r-n-b" in normalize_genres(["rnb"])
    assert normalize_genres(["R&B"]) == ["r-n-b"]
    assert normalize_genres(["Rock and Roll"]) == ["rock-n-roll"]
    assert normalize_genres(["alt"]) == ["alternative"]

def test_normalize_drops_invalid_and_keeps_order():
    assert normalize_genres(["indie", "invalid-xyz", "ambient"]) == ["indie", "ambient"]

def test_normalize_falls_back_to_pop():
    assert normalize_genres(["invalid1", "invalid2"]) == ["pop"]

def test_normalize_caps_at_five():
    genres = ["rock", "pop", "jazz", "blues", "soul", "funk", "disco"]
    assert normalize_genres(genres) == ["rock", "pop", "jazz", "blues", "soul"]

def test_normalize_empty():
    assert normalize_genres([]) == []

def test_normalize_cleans_case_punctuation_and_spaces():
    assert normalize_genres(["  Deep House! ", "Drum and Bass", "k-pop"]) == [
        "deep-house", "drum-and-bass", "k-pop",
    ]

def test_normalize_every_whitelisted_genre_is_stable():
    for g in VALID_GENRES:
        assert normalize_genres([g]) == [g]


def _mood(**kw):
    base = {"energy_level": "medium"}
    base.update(kw)
    return MoodAnalysis.model_validate(base)

def test_params_without_genres_leave_seed_genres_unset():
    params = mood_to_search_parameters(_mood(recommended_genres=[]))
    assert params.seed_genres is None

def test_params_with_only_bad_genres_use_fallback():
    params = mood_to_search_parameters(_mood(recommended_genres=["nope"]))
    assert params.seed_genres == ["pop"]

def test_params_sparse_mood_still_has_core_targets():
    params = mood_to_search_parameters(_mood())
    assert params.limit == 20
    assert params.target_energy == 0.6
    assert params.target_valence == 0.5
    assert params.target_danceability == 0.5
    assert params.target_acousticness is None
    assert params.target_instrumentalness is None
    assert params.seed_tracks is None
    assert params.seed_artists is None

def test_params_full_mood(mood):
    params = mood_to_search_parameters(MoodAnalysis.model_validate(mood), limit=7)
    assert params.limit == 7
    assert params.seed_genres == ["indie", "ambient"]
    assert params.seed_tracks == mood["seed_tracks"]
    # melancholic + nostalgic, nothing positive
    assert params.target_valence == 0.0
    assert params.target_instrumentalness == 0.7
    assert params.target_acousticness is None

def test_params_cap_seed_lists():
    names = [f"Track {i}" for i in range(9)]
    params = mood_to_search_parameters(_mood(seed_tracks=names, seed_artists=names))
    assert params.seed_tracks == names[:5]
    assert params.seed_artists == names[:5]

def test_params_tolerate_nulls():
    mood = MoodAnalysis.model_validate({
        "energy_level": "high", "mood_tags": None, "recommended_genres": None,
        "emotional_descriptors": None, "suggested_playlist_title": None,
    })
    params = mood_to_search_parameters(mood)
    assert params.target_energy == 0.9
    assert params.seed_genres is None

def test_params_targets_only_lists_set_values():
    params = mood_to_search_parameters(_mood(mood_tags=["acoustic"]))
    assert params.targets() == {
        "target_energy": 0.6,
        "target_valence": 0.5,
        "target_danceability": 0.5,
        "target_acousticness": 0.8,
    }

def test_seed_genres_round_trip_through_normalize():
    params = mood_to_search_parameters(_mood(recommended_genres=["Hip Hop", "indie rock", "Synth Pop"]))
    assert params.seed_genres == ["hip-hop", "indie", "synth-pop"]
    assert normalize_genres(params.seed_genres) == params.seed_genres

def test_invalid_energy_level_is_rejected():
    with pytest.raises(ValueError):
        MoodAnalysis.model_validate({"energy_level": "extreme"})
