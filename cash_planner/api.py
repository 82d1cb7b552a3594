from __future__ import annotations

import logging
import os
from typing import Any, Callable

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from cash_planner import accounts, database
from cash_planner.ai import LLMClient, LLMProvider, SuggestionService, get_provider_from_env
from cash_planner.config import load_config
from cash_planner.core.validation import parse_amount, validate_window
from cash_planner.database import record_to_dict
from cash_planner.errors import CashPlannerError, ValidationError
from cash_planner.projection import cash_flow_summary, project
from cash_planner.suggestions import ingest_suggestions

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    "validation_error": 400,
    "auth_error": 401,
    "not_found": 404,
    "duplicate_id": 409,
    "service_error": 502,
}


def _require_mapping(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


def _owner_resolver(config: dict) -> Callable[..., str]:
    auth_cfg = config["auth"]

    def resolve_owner(authorization: str | None = Header(default=None)) -> str:
        return accounts.resolve_owner(auth_cfg, accounts.extract_bearer_token(authorization))

    return resolve_owner


def create_app(config: dict | None = None, provider: LLMProvider | None = None) -> FastAPI:
    """Build the HTTP API around the store, the projection and the suggestion service.

    ``provider`` replaces the environment-selected LLM provider; tests pass a
    fake one so no network call is made.
    """
    config = config or load_config()
    auth_cfg = config["auth"]
    if auth_cfg.get("enabled", True) and not auth_cfg.get("token_secret"):
        raise ValueError(
            "auth.token_secret (or CASH_PLANNER_TOKEN_SECRET) is required when auth is enabled"
        )
    db_path = config["db_path"]

    app = FastAPI(title="Cash Planner API")
    app.state.config = config
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config["cors"]["allow_origins"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CashPlannerError)
    async def handle_cash_planner_error(request: Request, exc: CashPlannerError):
        status = _STATUS_BY_KIND.get(exc.kind, 400)
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, status, exc.message)
        return JSONResponse(status_code=status, content=exc.to_dict())

    current_owner = _owner_resolver(config)

    def suggestion_service() -> SuggestionService:
        return SuggestionService(LLMClient(provider or get_provider_from_env(config)))

    @app.get("/", response_class=PlainTextResponse)
    def index() -> str:
        return "Cash Planner Backend API"

    @app.post("/login")
    def login(payload: Any = Body(...)):
        body = _require_mapping(payload)
        if not auth_cfg.get("enabled", True):
            # single-tenant: no accounts, no tokens
            return {"token": None, "ownerId": str(auth_cfg["default_owner_id"])}
        owner_id = accounts.authenticate(db_path, body.get("username"), body.get("password"))
        token = accounts.issue_token(
            owner_id, auth_cfg["token_secret"], auth_cfg.get("token_ttl_seconds", 86400)
        )
        return {"token": token, "ownerId": owner_id}

    @app.get("/transactions")
    def get_transactions(owner_id: str = Depends(current_owner)):
        return [record_to_dict(r) for r in database.list_transactions(db_path, owner_id)]

    @app.post("/transactions", status_code=201)
    def add_transaction(payload: Any = Body(...), owner_id: str = Depends(current_owner)):
        record = database.add_transaction(db_path, owner_id, _require_mapping(payload))
        return {"message": "Transaction added successfully", "transaction": record_to_dict(record)}

    @app.put("/transactions/{tx_id}")
    def update_transaction(tx_id: str, payload: Any = Body(...), owner_id: str = Depends(current_owner)):
        record = database.update_transaction(db_path, tx_id, owner_id, _require_mapping(payload))
        return {"message": "Transaction updated successfully", "transaction": record_to_dict(record)}

    @app.delete("/transactions/{tx_id}")
    def delete_transaction(tx_id: str, owner_id: str = Depends(current_owner)):
        database.delete_transaction(db_path, tx_id, owner_id)
        return {"message": "Transaction deleted successfully"}

    @app.get("/occurrences")
    def get_occurrences(
        start: str | None = None,
        end: str | None = None,
        owner_id: str = Depends(current_owner),
    ):
        window_start, window_end = validate_window(start, end)
        records = database.list_transactions(db_path, owner_id)
        return [o.to_dict() for o in project(records, window_start, window_end)]

    @app.get("/summary")
    def get_summary(
        start: str | None = None,
        end: str | None = None,
        period: str = "month",
        opening_balance: str | None = None,
        owner_id: str = Depends(current_owner),
    ):
        window_start, window_end = validate_window(start, end)
        balance = parse_amount(opening_balance, "opening_balance") if opening_balance else 0.0
        records = database.list_transactions(db_path, owner_id)
        summary = cash_flow_summary(
            project(records, window_start, window_end),
            period=period,
            opening_balance=balance,
        )
        summary.update({"start": window_start.isoformat(), "end": window_end.isoformat()})
        return summary

    @app.post("/gemini-chat")
    def gemini_chat(payload: Any = Body(...), owner_id: str = Depends(current_owner)):
        body = _require_mapping(payload)
        if not body.get("chatHistory") or not body.get("systemPrompt"):
            raise ValidationError("Missing chat history or system prompt")
        suggestion = suggestion_service().suggest(body["chatHistory"], body["systemPrompt"])
        return suggestion.to_dict()

    @app.post("/suggestions/accept", status_code=201)
    def accept_suggestions(payload: Any = Body(...), owner_id: str = Depends(current_owner)):
        body = _require_mapping(payload)
        records = ingest_suggestions(db_path, owner_id, body.get("items"))
        return {"transactions": [record_to_dict(r) for r in records]}

    return app


def app_from_env() -> FastAPI:
    """Factory used by ``uvicorn --factory cash_planner.api:app_from_env``."""
    return create_app(load_config(os.environ.get("CASH_PLANNER_CONFIG", "config.yaml")))
