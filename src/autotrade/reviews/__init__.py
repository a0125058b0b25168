"""User reviews and ratings."""

from autotrade.reviews.service import RatingSummary, ReviewResult, ReviewService

__all__ = ["RatingSummary", "ReviewResult", "ReviewService"]
