"""
DuplicateDetector - Weighted Similarity Scoring

Compares a new UnifiedImportRecord with existing artworks near its location
and decides whether it already exists at the destination. The detector is
stateless: the nearby artworks are fetched by the caller through a
NearbyArtworkLookup and passed in.
"""

import logging
from collections.abc import Iterable
from typing import Optional, Protocol

from pyproj import Geod

from ..config.settings import DedupeConfig
from ..domain.models import (
    DuplicateCandidate,
    DuplicateDecision,
    ExistingArtwork,
    MatchSignals,
    UnifiedImportRecord,
)

logger = logging.getLogger(__name__)

SCORE_PRECISION = 6

_GEOD = Geod(ellps="WGS84")


class NearbyArtworkLookup(Protocol):
    """Read collaborator returning destination artworks around a point."""

    def find_nearby(self, lat: float, lon: float, radius_m: float) -> list[ExistingArtwork]:
        ...


def geodesic_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two WGS84 points."""
    _, _, distance = _GEOD.inv(lon1, lat1, lon2, lat2)
    return abs(distance)


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip().casefold()


class DuplicateDetector:
    """
    Scores candidates and applies the duplicate threshold.

    Signals per existing artwork, summed and clipped to [0, 1]:
    - title: trimmed, case-insensitive equality
    - artist: at least one shared artist name
    - location: geodesic distance strictly below the epsilon
    - tags: a fixed amount per equal key/value pair, capped
    """

    def __init__(self, config: Optional[DedupeConfig] = None):
        self.config = config or DedupeConfig()

    def score(self, candidate: UnifiedImportRecord, existing: ExistingArtwork) -> DuplicateCandidate:
        """Compare one record with one existing artwork."""
        cfg = self.config
        signals = MatchSignals()

        title = _normalize(candidate.title)
        if title and title == _normalize(existing.title):
            signals.title = cfg.title_weight

        ours = {_normalize(name) for name in candidate.artists} - {""}
        theirs = {_normalize(name) for name in existing.artists} - {""}
        if ours & theirs:
            signals.artist = cfg.artist_weight

        distance = geodesic_distance_m(candidate.lat, candidate.lon, existing.lat, existing.lon)
        signals.distance_m = round(distance, 3)
        if distance < cfg.location_epsilon_m:
            signals.location = cfg.location_weight

        matching = [
            key for key, value in candidate.tags.items()
            if key in existing.tags and existing.tags[key] == value
        ]
        signals.matching_tags = matching
        signals.tags = min(cfg.tag_cap, cfg.tag_weight * len(matching))

        total = signals.title + signals.artist + signals.location + signals.tags
        score = round(min(1.0, max(0.0, total)), SCORE_PRECISION)
        return DuplicateCandidate(existing_artwork_id=existing.id, score=score, signals=signals)

    def evaluate(
        self,
        candidate: UnifiedImportRecord,
        nearby: Iterable[ExistingArtwork],
    ) -> list[DuplicateCandidate]:
        """
        Score every nearby artwork.

        Returns:
            Candidates sorted by score descending, then artwork id ascending
        """
        scored = [self.score(candidate, existing) for existing in nearby]
        scored.sort(key=lambda c: (-c.score, c.existing_artwork_id))
        return scored

    def decide(self, candidates: list[DuplicateCandidate]) -> DuplicateDecision:
        """
        Apply the threshold to sorted candidates.

        A record is a duplicate when the best score is at or above the
        threshold. Every candidate sharing the best score is reported; the
        smallest artwork id among them is the matched artwork.
        """
        threshold = self.config.threshold
        if not candidates:
            return DuplicateDecision(is_duplicate=False, threshold=threshold)

        best = max(c.score for c in candidates)
        tied = sorted(
            (c for c in candidates if c.score == best),
            key=lambda c: c.existing_artwork_id,
        )
        is_duplicate = best >= threshold
        return DuplicateDecision(
            is_duplicate=is_duplicate,
            threshold=threshold,
            matched=tied[0] if is_duplicate else None,
            tied=tied,
            candidates=candidates,
        )

    def check(
        self,
        candidate: UnifiedImportRecord,
        nearby: Iterable[ExistingArtwork],
    ) -> DuplicateDecision:
        """Evaluate and decide in one step."""
        decision = self.decide(self.evaluate(candidate, nearby))
        if decision.is_duplicate:
            logger.debug(
                f"{candidate.source_id} matches {decision.matched.existing_artwork_id} "
                f"(score {decision.matched.score:.2f})"
            )
        return decision
