from tunematch.models.user import UserProfile
from tunematch.services.matching import find_best_match, score_candidate


def profile(spotify_id, artists):
    return UserProfile(spotify_id=spotify_id, display_name=spotify_id, top_artists=artists)


def test_higher_overlap_wins():
    """Candidate sharing three artists beats one sharing two."""
    x = profile("X", ["A", "B"])
    y = profile("Y", ["A", "B", "C", "D"])

    result = find_best_match(["A", "B", "C"], [x, y])

    assert result.profile is y
    assert result.score == 3
    assert result.shared_artists == ["A", "B", "C"]


def test_same_input_gives_same_match():
    candidates = [
        profile("one", ["A", "Z"]),
        profile("two", ["B", "Z"]),
        profile("three", ["A", "B"]),
    ]

    results = {find_best_match(["A", "B"], candidates).profile.spotify_id for _ in range(5)}

    assert results == {"three"}


def test_tie_goes_to_first_candidate():
    first = profile("first", ["A"])
    second = profile("second", ["A"])

    assert find_best_match(["A"], [first, second]).profile is first
    assert find_best_match(["A"], [second, first]).profile is second


def test_no_candidates_is_no_match():
    assert find_best_match(["A", "B"], []) is None


def test_candidates_without_artists_are_skipped():
    empty = profile("empty", [])
    missing = profile("missing", None)

    assert find_best_match(["A"], [empty, missing]) is None

    other = profile("other", ["Q"])
    assert find_best_match(["A"], [empty, other]).profile is other


def test_zero_overlap_still_matches():
    only = profile("only", ["Q", "R"])

    result = find_best_match(["A"], [only])

    assert result.profile is only
    assert result.score == 0
    assert result.shared_artists == []


def test_requester_duplicates_count_each_time():
    assert score_candidate(["A", "A", "B"], ["A"]) == 2

    repeated = profile("repeated", ["A"])
    single = profile("single", ["B", "C"])
    result = find_best_match(["A", "A", "B"], [single, repeated])

    assert result.profile is repeated
    assert result.score == 2
    assert result.shared_artists == ["A"]
