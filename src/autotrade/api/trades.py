"""Trade command surface: create, counter, accept, reject, cancel, decline.

Handlers run on the event loop and call the synchronous engine directly, so
operations are applied one at a time.  Events are published only after the
engine has committed.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from autotrade.api.deps import CurrentUser, IdempotencyKey, Services
from autotrade.api.schemas import CloseTradeRequest, CounterOfferRequest, CreateTradeRequest
from autotrade.domain.refs import TradeView, resolve_trade_view
from autotrade.domain.types import TradeAction, TradeStatus
from autotrade.realtime.publisher import RealtimePublisher
from autotrade.trades.engine import TradeEngine, TradeResult

router = APIRouter(prefix="/api/trades", tags=["trades"])


async def _respond(services: Services, result: TradeResult) -> TradeView:
    publisher: RealtimePublisher = services["publisher"]
    await publisher.publish_all(result.events)
    return resolve_trade_view(services["store"], result.trade)


@router.post("", status_code=201)
async def create_trade(
    body: CreateTradeRequest,
    user_id: CurrentUser,
    services: Services,
    idempotency_key: IdempotencyKey = None,
) -> TradeView:
    engine: TradeEngine = services["engine"]
    result = engine.create_trade(
        body.listing_id,
        user_id,
        body.offer,
        message=body.message,
        idempotency_key=idempotency_key,
    )
    return await _respond(services, result)


@router.get("")
async def list_trades(
    user_id: CurrentUser,
    services: Services,
    status: TradeStatus | None = None,
) -> list[TradeView]:
    engine: TradeEngine = services["engine"]
    return [
        resolve_trade_view(services["store"], trade)
        for trade in engine.list_trades(user_id, status)
    ]


@router.get("/{trade_id}")
async def get_trade(
    trade_id: str,
    user_id: CurrentUser,
    services: Services,
    expand: bool = Query(default=False),
) -> TradeView:
    engine: TradeEngine = services["engine"]
    trade = engine.get_trade(trade_id, user_id)
    return resolve_trade_view(services["store"], trade, expand=expand)


@router.post("/{trade_id}/counter")
async def counter_offer(
    trade_id: str,
    body: CounterOfferRequest,
    user_id: CurrentUser,
    services: Services,
    idempotency_key: IdempotencyKey = None,
) -> TradeView:
    engine: TradeEngine = services["engine"]
    proposal = body.model_dump(include={"offerer", "receiver"}, exclude_none=True)
    result = engine.counter_offer(
        trade_id,
        user_id,
        proposal,
        message=body.message,
        idempotency_key=idempotency_key,
    )
    return await _respond(services, result)


@router.post("/{trade_id}/accept")
async def accept_offer(
    trade_id: str,
    user_id: CurrentUser,
    services: Services,
    idempotency_key: IdempotencyKey = None,
) -> TradeView:
    engine: TradeEngine = services["engine"]
    result = engine.accept_offer(trade_id, user_id, idempotency_key=idempotency_key)
    return await _respond(services, result)


async def _close(
    trade_id: str,
    action: TradeAction,
    body: CloseTradeRequest | None,
    user_id: str,
    services: Services,
    idempotency_key: str | None,
) -> TradeView:
    engine: TradeEngine = services["engine"]
    result = engine.cancel_or_reject(
        trade_id,
        user_id,
        action,
        message=body.message if body is not None else "",
        idempotency_key=idempotency_key,
    )
    return await _respond(services, result)


@router.post("/{trade_id}/reject")
async def reject_trade(
    trade_id: str,
    user_id: CurrentUser,
    services: Services,
    body: CloseTradeRequest | None = None,
    idempotency_key: IdempotencyKey = None,
) -> TradeView:
    return await _close(trade_id, TradeAction.REJECTED, body, user_id, services, idempotency_key)


@router.post("/{trade_id}/cancel")
async def cancel_trade(
    trade_id: str,
    user_id: CurrentUser,
    services: Services,
    body: CloseTradeRequest | None = None,
    idempotency_key: IdempotencyKey = None,
) -> TradeView:
    return await _close(trade_id, TradeAction.CANCELLED, body, user_id, services, idempotency_key)


@router.post("/{trade_id}/decline")
async def decline_trade(
    trade_id: str,
    user_id: CurrentUser,
    services: Services,
    body: CloseTradeRequest | None = None,
    idempotency_key: IdempotencyKey = None,
) -> TradeView:
    return await _close(trade_id, TradeAction.DECLINED, body, user_id, services, idempotency_key)
