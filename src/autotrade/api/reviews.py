"""Review routes."""

from __future__ import annotations

from fastapi import APIRouter, Response

from autotrade.api.deps import CurrentUser, Services
from autotrade.api.schemas import ReviewRequest
from autotrade.domain.models import Review
from autotrade.reviews.service import RatingSummary, ReviewResult, ReviewService

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


@router.post("", status_code=201)
async def create_or_update_review(
    body: ReviewRequest, response: Response, user_id: CurrentUser, services: Services
) -> ReviewResult:
    reviews: ReviewService = services["reviews"]
    result = reviews.create_or_update_review(
        user_id, body.reviewee_id, body.rating, body.comment, trade_id=body.trade_id
    )
    if result.is_update:
        response.status_code = 200
    return result


@router.get("/user/{target_id}")
async def list_reviews_for_user(target_id: str, services: Services) -> list[Review]:
    reviews: ReviewService = services["reviews"]
    return reviews.list_reviews_for_user(target_id)


@router.get("/user/{target_id}/rating")
async def rating_summary(target_id: str, services: Services) -> RatingSummary:
    reviews: ReviewService = services["reviews"]
    return reviews.rating_summary(target_id)


@router.get("/between/{target_id}")
async def review_between(target_id: str, user_id: CurrentUser, services: Services) -> Review:
    reviews: ReviewService = services["reviews"]
    return reviews.review_between(user_id, target_id)


@router.delete("/{review_id}", status_code=204)
async def delete_review(review_id: str, user_id: CurrentUser, services: Services) -> Response:
    reviews: ReviewService = services["reviews"]
    reviews.delete_review(review_id, user_id)
    return Response(status_code=204)
