"""In-page relevance ranking for free-text searches."""

from typing import List, Optional, Sequence

from ..schemas.listings import Listing
from .filters import split_terms

TITLE_MATCH = 10.0
TITLE_PREFIX = 5.0
BRAND_MATCH = 8.0
MODEL_MATCH = 8.0
DESCRIPTION_MATCH = 3.0
VIEW_WEIGHT = 0.01
SAVE_WEIGHT = 0.1


def _lower(value: Optional[str]) -> str:
    return value.lower() if value else ""


def score_listing(listing: Listing, terms: Sequence[str]) -> float:
    """Weighted text-match score plus an engagement bonus.

    Args:
        listing: Listing to score
        terms: Lowercased query terms

    Returns:
        Relevance score, higher is better
    """
    title = _lower(listing.title)
    brand = _lower(listing.brand)
    model = _lower(listing.model)
    description = _lower(listing.description)

    score = 0.0
    for term in terms:
        if term in title:
            score += TITLE_MATCH
        if title.startswith(term):
            score += TITLE_PREFIX
        if term in brand:
            score += BRAND_MATCH
        if term in model:
            score += MODEL_MATCH
        if term in description:
            score += DESCRIPTION_MATCH

    score += listing.views * VIEW_WEIGHT + listing.saves * SAVE_WEIGHT
    return score


def rank_listings(listings: Sequence[Listing], query: Optional[str]) -> List[Listing]:
    """Order a page of listings by relevance to query.

    Returns copies carrying relevance_score; ties keep their incoming order.
    Without query terms the listings are returned unchanged.
    """
    terms = split_terms(query)
    if not terms:
        return list(listings)

    scored = [
        listing.model_copy(update={"relevance_score": score_listing(listing, terms)})
        for listing in listings
    ]
    # sorted() is stable, so equal scores keep store order
    return sorted(scored, key=lambda listing: listing.relevance_score, reverse=True)
