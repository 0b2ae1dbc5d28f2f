"""Fuzzy matching utilities using RapidFuzz."""
from typing import List, Optional, Sequence, Tuple

from rapidfuzz import fuzz, process

from geosdk.core.models import RegionLabel
from geosdk.core.normalization import strip_region_decorations


def _region_choices(regions: Sequence[RegionLabel]) -> List[Tuple[str, int]]:
    """Decoration-free labels in both languages, each tagged with its region index."""
    choices = []
    for idx, region in enumerate(regions):
        for label in (region.ar, region.en):
            core = strip_region_decorations(label) if label else ""
            if len(core) >= 3:
                choices.append((core, idx))
    return choices


def detect_region_hint(
    query: str,
    regions: Sequence[RegionLabel],
    threshold: float = 0.9
) -> Optional[RegionLabel]:
    """
    Find the region a free-text address query mentions.

    A region matches when its decoration-free label ("الرياض" for
    "منطقة الرياض", "riyadh" for "Riyadh Region") appears in the query, or
    when RapidFuzz partial_ratio scores it at or above the threshold. The
    longest literal match wins, then the best fuzzy score.

    Args:
        query: Cleaned query text
        regions: Known region labels
        threshold: Minimum similarity score (0-1) for a fuzzy hit

    Returns:
        The matching RegionLabel, or None
    """
    if not query or not regions:
        return None

    text = query.lower()
    choices = _region_choices(regions)
    if not choices:
        return None

    literal = [(core, idx) for core, idx in choices if core in text]
    if literal:
        core, idx = max(literal, key=lambda c: len(c[0]))
        return regions[idx]

    best = process.extractOne(
        text,
        [core for core, _ in choices],
        scorer=fuzz.partial_ratio,
        score_cutoff=int(threshold * 100)
    )
    if best is None:
        return None
    _, _, position = best
    return regions[choices[position][1]]
