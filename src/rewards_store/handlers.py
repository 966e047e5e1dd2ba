"""
API Gateway style handlers.

Each handler turns a proxy event (a dict with ``headers``, ``body``,
``queryStringParameters``, ``pathParameters``) into a call on a shared
``RewardsClient`` and renders the result or error as
``{"statusCode", "headers", "body"}``. Catalog handlers are anonymous; every
other handler needs a username claim.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional
from uuid import UUID

from loguru import logger
from pydantic import BaseModel, ValidationError

from .client import RewardsClient
from .errors import (
    ConcurrencyConflict,
    ConnectionFailure,
    DomainError,
    InsufficientBalance,
    InvalidArgument,
    NotFound,
    RewardsOperationalError,
)

USERNAME_CLAIMS = ("username", "cognito:username")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,*",
    "Access-Control-Expose-Headers": "Date, x-api-id, *",
    "Content-Type": "application/json",
}

Event = Mapping[str, Any]
Response = Dict[str, Any]


def username_from_headers(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """Username claim of the bearer JWT in the ``authorization`` header.

    The token signature is not verified here; the API gateway authorizer
    has already done that.
    """
    if not headers:
        return None
    token = headers.get("authorization") or headers.get("Authorization")
    if not token or not token.startswith("Bearer "):
        return None
    chunks = token[len("Bearer ") :].split(".")
    if len(chunks) < 2:
        return None
    payload = chunks[1]
    try:
        decoded = base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4))
        claims = json.loads(decoded)
    except (binascii.Error, ValueError) as e:
        raise InvalidArgument(f"Error parsing Authorization payload: {payload}") from e
    if not isinstance(claims, dict):
        return None
    for claim in USERNAME_CLAIMS:
        if claim in claims:
            return str(claims[claim])
    logger.warning(f"Username not found in payload: {payload}")
    return None


def error_body(message: str) -> str:
    return json.dumps({"error": message})


def response(status: int, body: Any = None) -> Response:
    if body is not None and not isinstance(body, str):
        body = json.dumps(body, default=str)
    return {"statusCode": status, "headers": dict(CORS_HEADERS), "body": body}


def error_response(e: Exception) -> Response:
    """Map a caller-input or classified terminal error to a response."""
    cause = getattr(e, "cause", None) or e
    if isinstance(cause, NotFound):
        return response(404, error_body(str(cause)))
    if isinstance(cause, (InvalidArgument, InsufficientBalance)):
        return response(400, error_body(str(cause)))
    if isinstance(cause, ValidationError):
        return response(400, error_body(str(cause)))
    if isinstance(e, (ConcurrencyConflict, ConnectionFailure)):
        return response(503, error_body("Service busy, please retry"))
    logger.error(f"Unhandled error: {e!r}")
    return response(500, error_body("Internal error"))


def _guard(op: Callable[[], Response]) -> Response:
    try:
        return op()
    except (RewardsOperationalError, DomainError, ValidationError) as e:
        return error_response(e)


def _handle(event: Event, op: Callable[[str], Response]) -> Response:
    def _authenticated() -> Response:
        username = username_from_headers(event.get("headers"))
        if username is None:
            logger.error("Unable to determine username from request")
            return response(401, error_body("Unable to determine username from request"))
        return op(username)

    return _guard(_authenticated)


def _dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json")


def _json_body(event: Event) -> dict:
    raw = event.get("body") or "{}"
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise InvalidArgument("Unable to parse JSON body") from e
    if not isinstance(data, dict):
        raise InvalidArgument("JSON body must be an object")
    return data


def _parse_uuid(name: str, value: Any) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as e:
        raise InvalidArgument(f"Invalid {name}: {value}") from e


def _path_uuid(event: Event, name: str) -> Optional[UUID]:
    value = (event.get("pathParameters") or {}).get(name)
    if value is None:
        return None
    return _parse_uuid(name, value)


def _query_param(event: Event, name: str) -> Optional[str]:
    return (event.get("queryStringParameters") or {}).get(name)


def _query_epoch_ms(event: Event, name: str, default: datetime) -> datetime:
    value = _query_param(event, name)
    if value is None:
        return default
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError) as e:
        raise InvalidArgument(f"Invalid {name}: {value}") from e


# ---------- customer ----------


def customer_handler(client: RewardsClient, event: Event) -> Response:
    return _handle(event, lambda username: response(200, _dump(client.customer(username))))


def balance_handler(client: RewardsClient, event: Event) -> Response:
    return _handle(event, lambda username: response(200, {"balance": client.balance(username)}))


# ---------- catalog ----------


def catalog_items_handler(client: RewardsClient, event: Event) -> Response:
    """List the catalog; anonymous. ``category`` may come from the path or the query."""

    def _op() -> Response:
        category = (event.get("pathParameters") or {}).get("category") or _query_param(
            event, "category"
        )
        items = client.catalog_items(
            sort_by=_query_param(event, "sortBy"),
            sort_order=_query_param(event, "sortOrder"),
            category=category,
        )
        return response(200, {"products": [_dump(i) for i in items]})

    return _guard(_op)


def catalog_item_handler(client: RewardsClient, event: Event) -> Response:
    def _op() -> Response:
        item_id = _path_uuid(event, "item_id")
        if item_id is None:
            raise NotFound("item_id is required")
        return response(200, _dump(client.catalog_item(item_id)))

    return _guard(_op)


# ---------- shopping cart ----------


def cart_items_handler(client: RewardsClient, event: Event) -> Response:
    def _op(username: str) -> Response:
        return response(200, {"cart": [_dump(i) for i in client.cart_items(username)]})

    return _handle(event, _op)


def cart_item_handler(client: RewardsClient, event: Event) -> Response:
    def _op(username: str) -> Response:
        data = _json_body(event)
        if "itemId" not in data:
            raise InvalidArgument("itemId is required")
        item_id = _parse_uuid("itemId", data["itemId"])
        quantity = data.get("quantity", 1)
        # bool is an int subclass; floats are never truncated
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidArgument(f"Invalid quantity: {quantity}")
        client.add_cart_item(username, item_id, quantity)
        return response(200)

    return _handle(event, _op)


def delete_cart_item_handler(client: RewardsClient, event: Event) -> Response:
    def _op(username: str) -> Response:
        client.remove_cart_items(username, _path_uuid(event, "item_id"))
        return response(200)

    return _handle(event, _op)


def checkout_handler(client: RewardsClient, event: Event) -> Response:
    def _op(username: str) -> Response:
        tx_id = client.checkout(username)
        if tx_id is None:
            return response(200, {"message": "Empty cart. Nothing to do."})
        return response(200, {"txId": str(tx_id)})

    return _handle(event, _op)


# ---------- transactions ----------


def transactions_handler(client: RewardsClient, event: Event) -> Response:
    """Transactions between ``from`` and ``to`` (epoch millis); last 30 days by default."""

    def _op(username: str) -> Response:
        end = _query_epoch_ms(event, "to", datetime.now(timezone.utc))
        start = _query_epoch_ms(event, "from", end - timedelta(days=30))
        txs = client.transactions(username, start, end)
        return response(200, {"transactions": [_dump(t) for t in txs]})

    return _handle(event, _op)


def transaction_handler(client: RewardsClient, event: Event) -> Response:
    def _op(username: str) -> Response:
        tx_id = _path_uuid(event, "tx_id")
        if tx_id is None:
            raise NotFound("tx_id is required")
        return response(200, _dump(client.transaction(username, tx_id)))

    return _handle(event, _op)
