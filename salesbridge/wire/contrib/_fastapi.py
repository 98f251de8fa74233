import hmac
import logging
import uuid
from typing import Any

import fastapi
from fastapi.responses import JSONResponse
from kungfu import Ok, Error

from salesbridge.order import OrderKey
from salesbridge.pipeline import CommitPipeline, ItemResult
from salesbridge.logging_config import set_request_id, reset_request_id
from salesbridge.wire._codecs import BatchOut, ErrorOut, StatusOut, decode_envelope

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"
REQUEST_ID_HEADER = "X-Request-ID"
OPEN_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorOut(code=code, message=message).model_dump(by_alias=True)
    return JSONResponse(status_code=status_code, content=body)


def _key_matches(given: str | None, expected: str) -> bool:
    if not given:
        return False
    return hmac.compare_digest(given.encode(), expected.encode())


async def _read_json(request: fastapi.Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(
    commits: CommitPipeline,
    api_key: str = "",
    lifespan: Any = None,
) -> fastapi.FastAPI:
    """
    HTTP surface over a commit pipeline.

    POST /orders                                   batch submit
    GET  /orders/{external_order_id}/{instance_id} ledger status
    GET  /health
    """
    app = fastapi.FastAPI(title="salesbridge", lifespan=lifespan)

    @app.middleware("http")
    async def request_context(request: fastapi.Request, call_next: Any) -> Any:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = set_request_id(request_id)
        try:
            if (
                api_key
                and request.url.path not in OPEN_PATHS
                and not _key_matches(request.headers.get(API_KEY_HEADER), api_key)
            ):
                logger.warning("Rejected request without a valid API key: %s", request.url.path)
                response = _error(401, "UNAUTHORIZED", "Missing or invalid API key")
            else:
                response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/orders", response_model=BatchOut, response_model_exclude_none=True)
    async def submit_orders(request: fastapi.Request) -> Any:
        payload = await _read_json(request)
        if not isinstance(payload, list) or not payload:
            return _error(400, "BAD_REQUEST", "Expected a JSON array with at least one order")

        results: list[ItemResult] = []
        for raw in payload:
            match decode_envelope(raw):
                case Ok(envelope):
                    results.append(await commits.submit(envelope))
                case Error(problem):
                    results.append(ItemResult.invalid(problem))

        logger.info(
            "Batch processed: %d items, %d ok",
            len(results),
            sum(1 for r in results if r.ok),
        )
        return BatchOut.from_domain(results)

    @app.get(
        "/orders/{external_order_id}/{instance_id}",
        response_model=StatusOut,
        response_model_exclude_none=True,
    )
    async def order_status(external_order_id: str, instance_id: str) -> Any:
        key = OrderKey(external_order_id.strip(), instance_id.strip())
        match await commits.status(key):
            case Ok(None):
                return _error(404, "NOT_FOUND", f"No ledger entry for {key}")
            case Ok(entry):
                return StatusOut.from_domain(entry)
            case Error(err):
                logger.error("Status lookup failed for %s: %s", key, err.message)
                return _error(503, "LEDGER_ERROR", "Order ledger is unavailable")

    return app


__all__ = (
    "API_KEY_HEADER",
    "REQUEST_ID_HEADER",
    "create_app",
)
