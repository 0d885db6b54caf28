"""Best-match selection by shared favorite artists."""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from tunematch.models.user import UserProfile

NO_MATCH_MESSAGE = "No match found. Invite your friends!"


@dataclass
class MatchResult:
    profile: UserProfile
    score: int
    shared_artists: List[str] = field(default_factory=list)


def score_candidate(requester_artists: Sequence[str], candidate_artists: Sequence[str]) -> int:
    """
    Count requester artists that also appear in the candidate's list.

    Membership is tested against the candidate's list as-is, so an artist
    repeated in the requester's list is counted once per repetition.
    """
    return sum(1 for artist in requester_artists if artist in candidate_artists)


def find_best_match(
    requester_artists: Sequence[str],
    candidates: Iterable[UserProfile]
) -> Optional[MatchResult]:
    """
    Return the candidate sharing the most artists with the requester.

    Candidates without artists are skipped. On equal scores the first
    candidate in iteration order wins, so callers should pass candidates
    in a stable order. Returns None when no candidate has any artists.
    """
    best: Optional[MatchResult] = None

    for candidate in candidates:
        candidate_artists = candidate.top_artists or []
        if not candidate_artists:
            continue

        score = score_candidate(requester_artists, candidate_artists)
        if best is None or score > best.score:
            best = MatchResult(profile=candidate, score=score)

    if best is not None:
        shared = set(best.profile.top_artists)
        best.shared_artists = list(dict.fromkeys(a for a in requester_artists if a in shared))
    return best
