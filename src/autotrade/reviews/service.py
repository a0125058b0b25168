"""Reviews users leave for one another, and the rating derived from them."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import structlog
from pydantic import BaseModel

from autotrade.domain.errors import ForbiddenError, NotFoundError, ValidationFailedError
from autotrade.domain.models import Review, Trade, parse_model
from autotrade.state.store import DocumentStore

logger = structlog.get_logger()


class ReviewResult(BaseModel):
    """The stored review and whether it replaced an earlier one."""

    review: Review
    is_update: bool = False


class RatingSummary(BaseModel):
    user_id: str
    average: float = 0.0
    count: int = 0


class ReviewService:
    """Create, update and read reviews.

    A reviewer holds at most one review per reviewee; reviewing the same
    user again rewrites it.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def create_or_update_review(
        self,
        reviewer_id: str,
        reviewee_id: str,
        rating: int,
        comment: str = "",
        trade_id: str | None = None,
    ) -> ReviewResult:
        """Store *reviewer_id*'s review of *reviewee_id*.

        Raises:
            ValidationFailedError: Self-review, rating outside 1..5, or a
                comment longer than 1000 characters.
            NotFoundError: The referenced trade does not exist.
            ForbiddenError: The reviewer was not a party to that trade.
        """
        if reviewer_id == reviewee_id:
            raise ValidationFailedError("You cannot review yourself")
        listing_id = None
        if trade_id is not None:
            trade = self._store.require(Trade, trade_id)
            if trade.party_of(reviewer_id) is None:
                raise ForbiddenError("You can only reference trades you were involved in")
            listing_id = trade.listing_id

        candidate = parse_model(
            Review,
            {
                "reviewer_id": reviewer_id,
                "reviewee_id": reviewee_id,
                "rating": rating,
                "comment": comment,
                "trade_id": trade_id,
                "listing_id": listing_id,
            },
        )

        existing = self._find(reviewer_id, reviewee_id)
        if existing is None:
            review = self._store.insert(candidate)
            logger.info("review_created", review_id=review.id, reviewee_id=reviewee_id)
            return ReviewResult(review=review)

        existing.rating = candidate.rating
        existing.comment = candidate.comment
        if trade_id is not None:
            existing.trade_id = trade_id
            existing.listing_id = listing_id
        review = self._store.save(existing)
        logger.info("review_updated", review_id=review.id, reviewee_id=reviewee_id)
        return ReviewResult(review=review, is_update=True)

    def list_reviews_for_user(self, user_id: str) -> list[Review]:
        """Reviews received by *user_id*, most recently updated first."""
        reviews = self._store.find(Review, reviewee_id=user_id)
        return sorted(reviews, key=_updated, reverse=True)

    def review_between(self, reviewer_id: str, reviewee_id: str) -> Review:
        """Return the review *reviewer_id* left for *reviewee_id*.

        Raises:
            NotFoundError: No such review exists.
        """
        review = self._find(reviewer_id, reviewee_id)
        if review is None:
            raise NotFoundError("review", f"{reviewer_id}:{reviewee_id}")
        return review

    def rating_summary(self, user_id: str) -> RatingSummary:
        reviews = self._store.find(Review, reviewee_id=user_id)
        if not reviews:
            return RatingSummary(user_id=user_id)
        average = Decimal(sum(r.rating for r in reviews)) / len(reviews)
        return RatingSummary(
            user_id=user_id,
            average=float(average.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)),
            count=len(reviews),
        )

    def delete_review(self, review_id: str, user_id: str) -> None:
        """Delete a review; only its author may do so.

        Raises:
            NotFoundError: The review does not exist.
            ForbiddenError: Caller did not write it.
        """
        review = self._store.require(Review, review_id)
        if review.reviewer_id != user_id:
            raise ForbiddenError("You can only delete reviews you wrote")
        self._store.delete(Review, review_id)
        logger.info("review_deleted", review_id=review_id)

    def _find(self, reviewer_id: str, reviewee_id: str) -> Review | None:
        found = self._store.find(Review, reviewer_id=reviewer_id, reviewee_id=reviewee_id)
        return found[0] if found else None


def _updated(review: Review) -> datetime | None:
    return review.updated_at
