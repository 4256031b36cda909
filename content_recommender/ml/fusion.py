from typing import Dict, List, Sequence


def _positional_scores(candidates: Sequence[str], weight: float) -> Dict[str, float]:
    scores: Dict[str, float] = {}
    length = len(candidates)
    for position, content_id in enumerate(candidates):
        if content_id not in scores:
            scores[content_id] = (length - position) * weight
    return scores


def fuse_rankings(
    collaborative: Sequence[str],
    content_based: Sequence[str],
    limit: int,
    collaborative_weight: float = 0.7,
    content_weight: float = 0.3
) -> List[str]:
    """Merge two ranked id lists with weighted positional scoring.

    An id at position ``i`` of a list of length ``n`` earns ``(n - i) * weight``
    from that list; contributions are summed. Equal totals keep first-seen
    order, scanning the higher-weighted list first.
    """
    if limit <= 0:
        return []

    ranked_lists = [
        (collaborative_weight, collaborative),
        (content_weight, content_based),
    ]
    # Stable sort: collaborative stays first when the weights are equal
    ranked_lists.sort(key=lambda entry: entry[0], reverse=True)

    totals: Dict[str, float] = {}
    for weight, candidates in ranked_lists:
        for content_id, score in _positional_scores(candidates, weight).items():
            totals[content_id] = totals.get(content_id, 0.0) + score

    ordered = sorted(totals.items(), key=lambda entry: entry[1], reverse=True)
    return [content_id for content_id, _ in ordered[:limit]]
