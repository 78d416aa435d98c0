# src/geminisearch/api/app.py
import json
import logging
import os
import time
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from geminisearch.adapters.llm_gemini import GeminiClient
from geminisearch.core.chat import ChatSession, GroundingMode
from geminisearch.core.config import AppConfig, load_config
from geminisearch.core.errors import NotFoundError, ValidationError, classify_error
from geminisearch.core.formatter import format_response
from geminisearch.core.ports import IChatModel, ModelReply
from geminisearch.core.sessions import SessionStore, TtlExpiry
from geminisearch.core.sources import extract_sources

SEARCH_ERROR = "An error occurred while processing your search"
FOLLOWUP_ERROR = "An error occurred while processing your follow-up question"

logger = logging.getLogger("geminisearch.api")


def _configure_logging(level: str):
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(logging.StreamHandler())


def build_store(config: AppConfig) -> SessionStore:
    policy = TtlExpiry(config.session_ttl_sec) if config.session_ttl_sec > 0 else None
    return SessionStore(policy=policy, max_items=config.session_max_items)


def build_model(config: AppConfig) -> IChatModel:
    return GeminiClient(
        api_key=config.api_key,
        model=config.model_name,
        temperature=config.temperature,
        top_p=config.top_p,
        top_k=config.top_k,
        max_tokens=config.max_tokens,
        timeout=config.request_timeout_sec,
    )


def create_app(
    config: Optional[AppConfig] = None,
    model: Optional[IChatModel] = None,
    store: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Wire the search / follow-up routes around one model client and one
    session store. Raises ConfigurationError when no API key is configured.
      GET  /health
      GET  /api/search?q=...
      POST /api/follow-up   (JSON: {"sessionId": "...", "query": "..."})
    """
    config = config or load_config()
    _configure_logging(config.log_level)
    model = model or build_model(config)
    store = store if store is not None else build_store(config)

    app = FastAPI(title="Gemini Search API")
    app.state.config = config
    app.state.model = model
    app.state.store = store

    logger.info(f"[diag] APP_ENV={config.app_env}, MODEL={model.model}, "
                f"SESSION_TTL_SEC={config.session_ttl_sec}, SESSION_MAX_ITEMS={config.session_max_items}")

    # ---- helpers in the closure ----
    def _telemetry(route: str, status: int, t0: float, **extra):
        logger.info("[telemetry] %s", json.dumps({
            "route": route,
            "status": status,
            "latency_ms": round((time.perf_counter() - t0) * 1000.0, 1),
            "sessions": len(store),
            **extra,
        }))

    def _render(chat: ChatSession, reply: ModelReply) -> tuple[str, List[dict]]:
        summary = format_response(reply.text)
        if chat.mode is GroundingMode.UNGROUNDED:
            return summary, []
        return summary, [s.to_dict() for s in extract_sources(reply.grounding_metadata)]

    def _error_response(err: Exception, default_message: str, tag: str) -> JSONResponse:
        report = classify_error(err, default_message)

        if report.status == 429:
            n = report.retry_after_seconds
            message = f"Rate limit/quota exceeded. Retry in ~{n}s." if n else "Rate limit/quota exceeded. Please retry shortly."
            logger.error("[%s] rate limited: %s", tag, json.dumps({
                "status": report.status, "retryAfterSeconds": n, "message": report.message,
            }))
            body: dict = {"message": message}
            headers = None
            if n:
                body["retryAfterSeconds"] = n
                headers = {"Retry-After": str(n)}
            return JSONResponse(status_code=429, content=body, headers=headers)

        if isinstance(err, (ValidationError, NotFoundError)):
            logger.warning("[%s] %d %s", tag, report.status, report.message)
        else:
            logger.error("[%s] error: %s", tag, json.dumps({"status": report.status, "message": report.message}),
                         exc_info=err)
        return JSONResponse(status_code=report.status, content={"message": report.message})

    # ---- routes ----
    @app.get("/health")
    async def _health():
        return JSONResponse(status_code=200, content={
            "ok": True, "model": model.model, "sessions": len(store), "env": config.app_env,
        })

    @app.get("/api/search")
    async def _search(request: Request):
        t0 = time.perf_counter()
        try:
            query = request.query_params.get("q") or ""
            if not query.strip():
                raise ValidationError("Query parameter 'q' is required")

            # Prefer grounding via google_search; if the tool is unavailable, retry once without it.
            chat = ChatSession(model, GroundingMode.GROUNDED)
            try:
                reply = await run_in_threadpool(chat.send, query)
            except Exception as e:
                logger.warning("[search] google_search grounding failed; retrying without tools: %s", e)
                chat = ChatSession(model, GroundingMode.UNGROUNDED)
                reply = await run_in_threadpool(chat.send, query)

            summary, sources = _render(chat, reply)
            session_id = store.create(chat)
            _telemetry("search", 200, t0, grounding=chat.mode.value, sources=len(sources))
            return JSONResponse(status_code=200, content={
                "sessionId": session_id, "summary": summary, "sources": sources,
            })
        except Exception as e:
            resp = _error_response(e, SEARCH_ERROR, "search")
            _telemetry("search", resp.status_code, t0)
            return resp

    @app.post("/api/follow-up")
    async def _follow_up(request: Request):
        t0 = time.perf_counter()
        try:
            try:
                payload = await request.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            session_id = payload.get("sessionId")
            query = payload.get("query")
            if not (isinstance(session_id, str) and session_id.strip() and isinstance(query, str) and query.strip()):
                raise ValidationError("Both sessionId and query are required")

            chat = store.lookup(session_id)
            if chat is None:
                raise NotFoundError("Chat session not found")

            # no fallback here: the session keeps the grounding mode it was opened with
            reply = await run_in_threadpool(chat.send, query)
            logger.debug("[follow-up] raw reply: %s", json.dumps({
                "text": reply.text, "groundingMetadata": reply.grounding_metadata,
            }, ensure_ascii=False))

            summary, sources = _render(chat, reply)
            _telemetry("follow-up", 200, t0, grounding=chat.mode.value, sources=len(sources))
            return JSONResponse(status_code=200, content={"summary": summary, "sources": sources})
        except Exception as e:
            resp = _error_response(e, FOLLOWUP_ERROR, "follow-up")
            _telemetry("follow-up", resp.status_code, t0)
            return resp

    return app


def main():
    import uvicorn

    uvicorn.run(
        "geminisearch.api.app:create_app",
        factory=True,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
