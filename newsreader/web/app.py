"""FastAPI application serving the newsletter reader API and UI."""

import logging
import traceback
from contextlib import asynccontextmanager
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from ..clients import KeyValueStore, StoreError, create_store
from ..core.content import sanitize_html
from ..core.dates import utc_now_iso
from ..core.keys import candidate_keys, normalize_id
from ..core.normalizer import to_article
from ..core.repository import NewsletterNotFound, NewsletterRepository, NotReprocessable
from ..core.resolver import RecordResolver
from ..models.newsletter import (
    ArchiveRequest,
    PreviewRequest,
    ReadStatusRequest,
    ReprocessAllRequest,
    WebhookPayload,
)
from ..models.settings import Settings

logger = logging.getLogger(__name__)

WEB_DIR = Path(__file__).parent
THEMES = ("light", "dark")


@lru_cache()
def get_settings() -> Settings:
    return Settings()


logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    store = create_store(settings)
    app.state.store = store
    logger.info(f"Using {store.backend_name} store ({settings.environment})")
    try:
        await store.ping()
    except StoreError as e:
        logger.error(f"Store ping failed on startup: {e}")
    yield
    await store.close()


app = FastAPI(
    title="Newsletter Reader",
    description="Read newsletters stored in Redis or Upstash",
    version="1.0.0",
    lifespan=lifespan,
)

app.mount("/static", StaticFiles(directory=str(WEB_DIR / "static")), name="static")
templates = Jinja2Templates(directory=str(WEB_DIR / "templates"))


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_repository(
    store: KeyValueStore = Depends(get_store), settings: Settings = Depends(get_settings)
) -> NewsletterRepository:
    return NewsletterRepository(store, settings)


def _current_settings(request: Request) -> Settings:
    return request.app.dependency_overrides.get(get_settings, get_settings)()


def _error_body(message: str, error: Exception, settings: Settings) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message, "error": str(error)}
    if settings.is_development:
        body["stack"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return body


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", exc, _current_settings(request)),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", exc, _current_settings(request)),
    )


# ----------------------------------------------------------------------
# Health
# ----------------------------------------------------------------------


@app.get("/api/health")
async def health_check(
    store: KeyValueStore = Depends(get_store), settings: Settings = Depends(get_settings)
):
    """Health check endpoint."""
    try:
        await store.ping()
        store_status = "ok"
    except StoreError as e:
        logger.error(f"Health check store ping failed: {e}")
        store_status = "error"

    return {
        "status": "healthy" if store_status == "ok" else "degraded",
        "timestamp": utc_now_iso(),
        "environment": settings.environment,
        "hasRedisUrl": bool(settings.kv_rest_api_url or settings.redis_url),
        "hasRedisToken": bool(settings.kv_rest_api_token),
        "backend": store.backend_name,
        "store": store_status,
        "version": settings.app_version,
    }


# ----------------------------------------------------------------------
# Articles
# ----------------------------------------------------------------------


async def _article_response(raw_id: Optional[str], store: KeyValueStore, settings: Settings):
    clean_id = normalize_id(raw_id or "")
    if not clean_id:
        return JSONResponse(
            status_code=400, content={"success": False, "message": "Article ID is required"}
        )

    resolver = RecordResolver(store)
    try:
        # the resolver strips one prefix itself
        found = await resolver.find(raw_id)
    except StoreError as e:
        logger.error(f"Error fetching article {clean_id}: {e}")
        return JSONResponse(
            status_code=500, content=_error_body("Error fetching article", e, settings)
        )

    if found is None:
        debug: Dict[str, Any] = {"searchedKeys": [c.key for c in candidate_keys(clean_id)]}
        if settings.is_development:
            debug["attempts"] = [a.to_dict() for a in resolver.attempts]
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "message": "Article not found",
                "id": clean_id,
                "debug": debug,
            },
        )

    article = to_article(found.data, found.key, include_raw=settings.is_development)
    return {"success": True, **article.to_api()}


@app.get("/api/articles")
async def get_article_by_query(
    id: Optional[str] = Query(None),
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Article lookup with the id passed as ``?id=``."""
    return await _article_response(id, store, settings)


@app.get("/api/articles/{article_id:path}")
async def get_article(
    article_id: str,
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Resolve an article under any of its historical key names."""
    return await _article_response(article_id, store, settings)


# ----------------------------------------------------------------------
# Newsletters
# ----------------------------------------------------------------------


@app.get("/api/newsletters")
async def list_newsletters(
    page: int = Query(1),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    filter: str = Query(""),
    repository: NewsletterRepository = Depends(get_repository),
):
    result = await repository.list_newsletters(page=page, page_size=page_size, filter_text=filter)
    return result.to_api()


@app.get("/api/newsletters/{newsletter_id}")
async def get_newsletter(
    newsletter_id: str,
    repository: NewsletterRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    try:
        newsletter = await repository.get_newsletter(
            newsletter_id, include_raw=settings.is_development
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    if newsletter is None:
        return JSONResponse(status_code=404, content={"error": "Newsletter not found"})
    return newsletter.to_api()


@app.put("/api/newsletters/{newsletter_id}/read")
async def mark_read(
    newsletter_id: str,
    payload: Optional[ReadStatusRequest] = None,
    repository: NewsletterRepository = Depends(get_repository),
):
    payload = payload or ReadStatusRequest()
    try:
        result = await repository.set_read_status(newsletter_id, payload.is_read)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})
    return result.to_api()


@app.put("/api/newsletters/{newsletter_id}/archive")
async def archive(
    newsletter_id: str,
    payload: Optional[ArchiveRequest] = None,
    repository: NewsletterRepository = Depends(get_repository),
):
    payload = payload or ArchiveRequest()
    try:
        result = await repository.set_archived(newsletter_id, payload.is_archived, payload.content)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})
    except NewsletterNotFound:
        return JSONResponse(
            status_code=404, content={"success": False, "message": "Newsletter not found"}
        )
    return result.to_api()


@app.put("/api/newsletters/{newsletter_id}/preview")
async def update_preview(
    newsletter_id: str,
    payload: PreviewRequest,
    repository: NewsletterRepository = Depends(get_repository),
):
    if not isinstance(payload.content, str):
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid content", "details": {"content": "must be a string"}},
        )

    try:
        result = await repository.update_content(
            newsletter_id, payload.content, payload.preview_text
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})
    except NewsletterNotFound as e:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Newsletter not found", "details": {"key": str(e)}},
        )
    return {"success": True, "message": "Preview updated", **result}


# ----------------------------------------------------------------------
# Ingest and maintenance
# ----------------------------------------------------------------------


@app.post("/api/webhook")
async def webhook(
    payload: WebhookPayload, repository: NewsletterRepository = Depends(get_repository)
):
    """Receive an email forwarded by the mail service."""
    logger.info(f"Webhook received: {payload.subject!r} from {payload.sender!r}")
    newsletter_id = await repository.ingest(
        payload.subject, payload.body, payload.sender, payload.date
    )
    return {"message": "Newsletter received and saved", "id": newsletter_id}


@app.post("/api/fix-dates")
async def fix_dates(repository: NewsletterRepository = Depends(get_repository)):
    result = await repository.fix_dates()
    return {"success": True, "message": "Date fix complete", **result}


@app.post("/api/migrate")
async def migrate(repository: NewsletterRepository = Depends(get_repository)):
    result = await repository.migrate_content()
    return {"success": True, "message": "Content migration complete", **result}


@app.post("/api/reprocess/all")
async def reprocess_all(
    payload: Optional[ReprocessAllRequest] = None,
    repository: NewsletterRepository = Depends(get_repository),
):
    payload = payload or ReprocessAllRequest()
    if not payload.confirm_reprocess_all:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Confirmation required. Send confirmReprocessAll: true to proceed.",
            },
        )
    try:
        return await repository.reprocess_all(payload.max_count)
    except NotReprocessable as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})


@app.post("/api/reprocess/{newsletter_id}")
async def reprocess(
    newsletter_id: str, repository: NewsletterRepository = Depends(get_repository)
):
    try:
        result = await repository.reprocess(newsletter_id)
    except NewsletterNotFound:
        return JSONResponse(
            status_code=404, content={"success": False, "error": "Newsletter not found"}
        )
    except NotReprocessable as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    return {"message": "Newsletter reprocessed successfully", **result}


# ----------------------------------------------------------------------
# Debug
# ----------------------------------------------------------------------


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Not Found"})


async def _sample(store: KeyValueStore, key: str) -> Dict[str, Any]:
    key_type = await store.type(key)
    if key_type == "string":
        value: Any = await store.get(key)
    elif key_type == "hash":
        value = await store.hgetall(key)
    elif key_type == "list":
        value = await store.lrange(key, 0, 9)
    else:
        value = None
    return {"key": key, "type": key_type, "value": value}


@app.get("/api/debug/keys")
async def debug_keys(
    store: KeyValueStore = Depends(get_store), settings: Settings = Depends(get_settings)
):
    """List every key with a sample of the first few values."""
    if not settings.is_development:
        return _not_found()

    keys = await store.keys("*")
    sample = [await _sample(store, key) for key in keys[:5]]
    return {"success": True, "totalKeys": len(keys), "keys": keys, "sampleData": sample}


@app.get("/api/debug/article/{article_id:path}")
async def debug_article(
    article_id: str,
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Show every key the resolver probed for an article."""
    if not settings.is_development:
        return _not_found()

    resolver = RecordResolver(store)
    try:
        found = await resolver.find(article_id)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})

    return {
        "success": True,
        "id": normalize_id(article_id),
        "found": found is not None,
        "key": found.key if found else None,
        "representation": found.representation if found else None,
        "attempts": [a.to_dict() for a in resolver.attempts],
        "record": found.data if found else None,
    }


# ----------------------------------------------------------------------
# UI
# ----------------------------------------------------------------------


def _theme(request: Request) -> str:
    theme = request.cookies.get("theme", "light")
    return theme if theme in THEMES else "light"


def _same_origin_path(request: Request) -> str:
    """Path of the referring page, or ``/`` when it is on another host."""
    referer = request.headers.get("referer")
    if not referer:
        return "/"
    parts = urlsplit(referer)
    if parts.netloc and parts.netloc != request.url.netloc:
        return "/"
    path = parts.path or "/"
    # "//host" and "/\host" are treated as absolute URLs by browsers
    if not path.startswith("/") or path.startswith("//") or path.startswith("/\\"):
        return "/"
    return f"{path}?{parts.query}" if parts.query else path


@app.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    page: int = Query(1),
    filter: str = Query(""),
    repository: NewsletterRepository = Depends(get_repository),
):
    """Article grid."""
    result = await repository.list_newsletters(page=page, filter_text=filter)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "theme": _theme(request),
            "newsletters": result.newsletters,
            "pagination": result.pagination,
            "stats": result.stats,
            "filter": filter,
        },
    )


@app.get("/articles/{article_id}", response_class=HTMLResponse)
async def article_page(
    request: Request,
    article_id: str,
    store: KeyValueStore = Depends(get_store),
):
    """Full article view."""
    found = None
    if normalize_id(article_id):
        found = await RecordResolver(store).find(article_id)

    if found is None:
        return templates.TemplateResponse(
            request,
            "not_found.html",
            {"theme": _theme(request), "article_id": article_id},
            status_code=404,
        )

    article = to_article(found.data, found.key)
    article.content = sanitize_html(article.content)
    return templates.TemplateResponse(
        request,
        "article.html",
        {"theme": _theme(request), "article": article},
    )


@app.get("/theme/{name}")
async def set_theme(request: Request, name: str):
    if name not in THEMES:
        return JSONResponse(status_code=400, content={"error": f"Unknown theme: {name}"})

    response = RedirectResponse(_same_origin_path(request), status_code=303)
    response.set_cookie("theme", name, max_age=365 * 24 * 3600, samesite="lax")
    return response
