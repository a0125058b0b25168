"""Tests for user reviews and ratings."""

import pytest
from conftest import BUYER, OTHER_BUYER, SELLER, STRANGER

from autotrade.domain.errors import ForbiddenError, NotFoundError, ValidationFailedError
from autotrade.domain.models import Review
from autotrade.reviews.service import ReviewService


@pytest.fixture
def review_service(store) -> ReviewService:
    return ReviewService(store)


class TestCreateOrUpdateReview:
    def test_creates_review(self, review_service, store) -> None:
        result = review_service.create_or_update_review(BUYER, SELLER, 5, "  Smooth swap  ")

        assert not result.is_update
        assert result.review.rating == 5
        assert result.review.comment == "Smooth swap"
        assert result.review.trade_id is None
        assert store.require(Review, result.review.id) == result.review

    def test_second_review_updates_the_first(self, review_service, store, clock) -> None:
        first = review_service.create_or_update_review(BUYER, SELLER, 2, "Late")
        clock.advance(days=1)
        second = review_service.create_or_update_review(BUYER, SELLER, 4, "Made up for it")

        assert second.is_update
        assert second.review.id == first.review.id
        assert second.review.rating == 4
        assert second.review.comment == "Made up for it"
        assert second.review.updated_at == clock.now
        assert len(store.find(Review)) == 1

    def test_update_keeps_earlier_trade_link(self, review_service, engine, listing) -> None:
        trade = engine.create_trade(listing.id, BUYER, {"cash_amount": "5"}).trade
        review_service.create_or_update_review(BUYER, SELLER, 3, trade_id=trade.id)
        updated = review_service.create_or_update_review(BUYER, SELLER, 4).review
        assert updated.trade_id == trade.id
        assert updated.listing_id == listing.id

    def test_cannot_review_yourself(self, review_service) -> None:
        with pytest.raises(ValidationFailedError, match="yourself"):
            review_service.create_or_update_review(BUYER, BUYER, 5)

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_out_of_range(self, review_service, rating: int) -> None:
        with pytest.raises(ValidationFailedError, match="rating"):
            review_service.create_or_update_review(BUYER, SELLER, rating)

    def test_comment_length_limit(self, review_service) -> None:
        review_service.create_or_update_review(BUYER, SELLER, 3, "x" * 1000)
        with pytest.raises(ValidationFailedError, match="comment"):
            review_service.create_or_update_review(BUYER, OTHER_BUYER, 3, "x" * 1001)

    def test_invalid_update_leaves_review_unchanged(self, review_service, store) -> None:
        review = review_service.create_or_update_review(BUYER, SELLER, 3).review
        with pytest.raises(ValidationFailedError):
            review_service.create_or_update_review(BUYER, SELLER, 9)
        assert store.require(Review, review.id).rating == 3

    def test_trade_reference_requires_party(self, review_service, engine, listing) -> None:
        trade = engine.create_trade(listing.id, BUYER, {"cash_amount": "5"}).trade

        linked = review_service.create_or_update_review(SELLER, BUYER, 5, trade_id=trade.id)
        assert linked.review.trade_id == trade.id

        with pytest.raises(ForbiddenError, match="involved in"):
            review_service.create_or_update_review(STRANGER, SELLER, 1, trade_id=trade.id)

    def test_unknown_trade(self, review_service) -> None:
        with pytest.raises(NotFoundError):
            review_service.create_or_update_review(BUYER, SELLER, 5, trade_id="nope")


class TestReadingReviews:
    def test_list_newest_update_first(self, review_service, clock) -> None:
        older = review_service.create_or_update_review(BUYER, SELLER, 4).review
        clock.advance(minutes=1)
        newer = review_service.create_or_update_review(OTHER_BUYER, SELLER, 5).review
        review_service.create_or_update_review(SELLER, BUYER, 1)

        assert [r.id for r in review_service.list_reviews_for_user(SELLER)] == [newer.id, older.id]

        clock.advance(minutes=1)
        review_service.create_or_update_review(BUYER, SELLER, 3)
        assert [r.id for r in review_service.list_reviews_for_user(SELLER)] == [older.id, newer.id]

    def test_review_between(self, review_service) -> None:
        review = review_service.create_or_update_review(BUYER, SELLER, 4).review
        assert review_service.review_between(BUYER, SELLER).id == review.id
        with pytest.raises(NotFoundError):
            review_service.review_between(SELLER, BUYER)

    def test_rating_summary(self, review_service) -> None:
        review_service.create_or_update_review(BUYER, SELLER, 4)
        review_service.create_or_update_review(OTHER_BUYER, SELLER, 5)
        review_service.create_or_update_review(STRANGER, SELLER, 5)

        summary = review_service.rating_summary(SELLER)

        assert summary.count == 3
        assert summary.average == 4.7

    def test_rating_rounds_half_up(self, review_service) -> None:
        for reviewer, rating in ((BUYER, 4), (OTHER_BUYER, 4), (STRANGER, 4), ("fourth", 5)):
            review_service.create_or_update_review(reviewer, SELLER, rating)
        assert review_service.rating_summary(SELLER).average == 4.3

    def test_no_reviews(self, review_service) -> None:
        summary = review_service.rating_summary(SELLER)
        assert summary.count == 0
        assert summary.average == 0.0


class TestDeleteReview:
    def test_author_deletes(self, review_service, store) -> None:
        review = review_service.create_or_update_review(BUYER, SELLER, 4).review
        review_service.delete_review(review.id, BUYER)
        assert store.get(Review, review.id) is None
        assert review_service.rating_summary(SELLER).count == 0

    def test_reviewee_cannot_delete(self, review_service) -> None:
        review = review_service.create_or_update_review(BUYER, SELLER, 1).review
        with pytest.raises(ForbiddenError):
            review_service.delete_review(review.id, SELLER)
