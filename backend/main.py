import logging
import secrets
from datetime import datetime
from pathlib import Path
from typing import Annotated, Callable

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from backend.app.catalog import DATE_FILTERS, SORT_ORDERS, VIDEO_CATEGORIES, category_name
from backend.app.config import Settings
from backend.app.errors import DashboardError
from backend.app.services.aggregator import TrendingAggregator, build_query
from backend.app.services.credentials import CredentialRotator
from backend.app.services.dashboard import (
    AggregatorFetcher,
    DashboardController,
    HttpFetcher,
    SessionRegistry,
    format_number,
    format_relative_date,
)
from backend.app.services.rate_limit import RateLimiter
from backend.app.services.youtube_client import YouTubeClient

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["compact_number"] = format_number
templates.env.filters["relative_date"] = format_relative_date
templates.env.filters["category_name"] = category_name

router = APIRouter()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# ---------------------------
# Error handlers
# ---------------------------

async def dashboard_error_handler(request: Request, exc: DashboardError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("%s %s -> %s %s: %s", request.method, request.url.path, exc.status_code, exc.error_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def http_error_handler(_request: Request, exc: StarletteHTTPException):
    error_code = "RATE_LIMITED" if exc.status_code == 429 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "errorCode": error_code},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid query parameters",
            "details": jsonable_encoder(exc.errors()),
            "errorCode": "INVALID_PARAMETER",
        },
    )


# ---------------------------
# App setup
# ---------------------------

def create_app(
    settings: Settings | None = None,
    client: YouTubeClient | None = None,
    rotator: CredentialRotator | None = None,
    now: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    client = client or YouTubeClient(
        timeout=settings.upstream_timeout_seconds,
        default_region=settings.default_region,
    )
    if rotator is None:
        rotator = CredentialRotator(settings.api_keys)

    aggregator_kwargs = {"shorts_sample_size": settings.shorts_sample_size}
    if now is not None:
        aggregator_kwargs["now"] = now
    aggregator = TrendingAggregator(client, rotator, **aggregator_kwargs)

    if settings.dashboard_api_base_url:
        fetcher = HttpFetcher(settings.dashboard_api_base_url, timeout=settings.upstream_timeout_seconds * 2)
    else:
        fetcher = AggregatorFetcher(aggregator, default_region=settings.default_region)

    app = FastAPI(title="Trending Dashboard")
    app.state.settings = settings
    app.state.aggregator = aggregator
    app.state.rate_limiter = RateLimiter(
        max_requests=settings.api_rate_limit_max_requests,
        window_seconds=settings.api_rate_limit_window_seconds,
    )
    app.state.sessions = SessionRegistry(
        lambda: DashboardController(
            fetcher,
            default_region=settings.default_region,
            cache_capacity=settings.result_cache_capacity,
        ),
        max_sessions=settings.max_sessions,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(SessionMiddleware, secret_key=settings.session_secret or secrets.token_hex(32))

    app.add_exception_handler(DashboardError, dashboard_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)

    if not len(rotator):
        logger.warning("No YouTube API key configured; /api/youtube will fail until YOUTUBE_API_KEYS is set")
    return app


def get_controller(request: Request) -> DashboardController:
    session_id = request.session.get("sid")
    if not session_id:
        session_id = secrets.token_urlsafe(16)
        request.session["sid"] = session_id
    return request.app.state.sessions.get(session_id)


def back_to_dashboard() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=303)


# ---------------------------
# API
# ---------------------------

@router.get("/health")
def health():
    return {"ok": True}


@router.get("/api/categories")
def categories():
    return {
        "categories": [{"id": cid, "name": name} for cid, name in VIDEO_CATEGORIES],
        "dateFilters": [{"id": key, "name": name, "days": days} for key, name, days in DATE_FILTERS],
        "sortOrders": list(SORT_ORDERS),
    }


@router.get("/api/youtube")
def youtube_videos(
    request: Request,
    max_results: Annotated[int | None, Query(alias="maxResults")] = None,
    region_code: Annotated[str | None, Query(alias="regionCode")] = None,
    content_type: Annotated[str | None, Query(alias="type")] = None,
    page_token: Annotated[str | None, Query(alias="pageToken")] = None,
    video_category_id: Annotated[str | None, Query(alias="videoCategoryId")] = None,
    date_filter: Annotated[str | None, Query(alias="dateFilter")] = None,
    sort_order: Annotated[str | None, Query(alias="sortOrder")] = None,
):
    """
    Trending videos (type=popular, chart passthrough with page tokens) or
    Shorts (type=shorts, search + details sample, single page).
    """
    request.app.state.rate_limiter.enforce(request, scope="youtube")
    query = build_query(
        max_results=max_results,
        region_code=region_code,
        content_type=content_type,
        page_token=page_token,
        category_id=video_category_id,
        date_filter=date_filter,
        sort_order=sort_order,
        default_region=request.app.state.settings.default_region,
    )
    return request.app.state.aggregator.fetch(query).to_payload()


# ---------------------------
# Dashboard
# ---------------------------

@router.get("/", response_class=HTMLResponse)
def dashboard_page(request: Request):
    controller = get_controller(request)
    if not controller.loaded:
        request.app.state.rate_limiter.enforce(request, scope="dashboard")
        controller.ensure_loaded()
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "controller": controller,
            "state": controller.state,
            "videos": controller.videos,
            "lang": controller.lang,
            "categories": VIDEO_CATEGORIES,
            "date_filters": DATE_FILTERS,
        },
    )


@router.get("/dashboard/filters")
def dashboard_filters(
    request: Request,
    content_type: Annotated[str | None, Query(alias="type")] = None,
    region_code: Annotated[str | None, Query(alias="regionCode")] = None,
    video_category_id: Annotated[str | None, Query(alias="videoCategoryId")] = None,
    date_filter: Annotated[str | None, Query(alias="dateFilter")] = None,
    sort_order: Annotated[str | None, Query(alias="sortOrder")] = None,
):
    request.app.state.rate_limiter.enforce(request, scope="dashboard")
    get_controller(request).set_filters(
        content_type=content_type,
        region=region_code,
        category_id=video_category_id,
        date_filter=date_filter,
        sort_order=sort_order,
    )
    return back_to_dashboard()


@router.get("/dashboard/next")
def dashboard_next(request: Request):
    request.app.state.rate_limiter.enforce(request, scope="dashboard")
    get_controller(request).next_page()
    return back_to_dashboard()


@router.get("/dashboard/previous")
def dashboard_previous(request: Request):
    request.app.state.rate_limiter.enforce(request, scope="dashboard")
    get_controller(request).previous_page()
    return back_to_dashboard()


@router.get("/dashboard/retry")
def dashboard_retry(request: Request):
    request.app.state.rate_limiter.enforce(request, scope="dashboard")
    get_controller(request).retry()
    return back_to_dashboard()


@router.get("/dashboard/reset")
def dashboard_reset(request: Request):
    request.app.state.rate_limiter.enforce(request, scope="dashboard")
    get_controller(request).reset_filters()
    return back_to_dashboard()


_settings = Settings.from_env()
configure_logging(_settings.log_level)
app = create_app(_settings)
