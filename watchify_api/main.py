import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

import uvicorn
from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import settings
from .errors import (
    DEFAULT_RETRY_AFTER_SECONDS,
    ClassifiedError,
    ErrorKind,
    UpstreamError,
    internal,
)
from .clients.movie_client import (
    get_movie_detail,
    list_genres,
    list_now_playing,
    list_popular,
    search_movies,
)
from .schemas.movies_schemas import (
    ErrorResponse,
    GenresResponse,
    HealthEnvironment,
    HealthResponse,
    Movie,
    PaginatedMovies,
)
from .utils.utils_movies_client import cache_control
from .validation import (
    ValidationRejection,
    validate_genres,
    validate_movie_id,
    validate_page,
    validate_query,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

DISCONNECT_POLL_SECONDS = 0.25
CLIENT_CLOSED_REQUEST = 499

PREFLIGHT_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}

ERROR_RESPONSES = {
    429: {'model': ErrorResponse},
    500: {'model': ErrorResponse},
    503: {'model': ErrorResponse},
}


class ClientDisconnected(Exception):
    pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info("Starting %s (%s)", settings.APP_NAME, settings.ENVIRONMENT)
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(title=settings.APP_NAME, version='1.0.0', lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ['*'],
    allow_methods=['GET', 'OPTIONS'],
    allow_headers=['Content-Type'],
)
router = APIRouter(prefix='/api')


def _json(model: BaseModel, status_code: int = 200, headers=None) -> JSONResponse:
    # error bodies omit absent keys instead of sending nulls
    exclude_none = isinstance(model, ErrorResponse)
    return JSONResponse(
        content=model.model_dump(mode="json", by_alias=True,
                                 exclude_none=exclude_none),
        status_code=status_code,
        headers=headers,
    )


def rejection_response(rejection: ValidationRejection) -> JSONResponse:
    return _json(
        ErrorResponse(error=rejection.error, message=rejection.message,
                      code=rejection.code),
        status_code=rejection.status,
    )


def error_response(error: ClassifiedError) -> JSONResponse:
    """
    Render a classified error as the public error body.

    :param error: Failure classified by the upstream client or the handler.
    :return: JSONResponse with the status carried by the error.
    """
    headers = None
    if error.kind is ErrorKind.RATE_LIMITED:
        retry_after = error.retry_after_seconds
        if retry_after is None:
            retry_after = DEFAULT_RETRY_AFTER_SECONDS
        body = ErrorResponse(
            error='Rate limit exceeded',
            message='Too many requests to external API',
            code=error.code,
            retry_after=retry_after,
        )
        headers = {'Retry-After': str(retry_after)}
    elif error.kind is ErrorKind.SERVICE_UNAVAILABLE:
        body = ErrorResponse(
            error='External API unavailable',
            message='Movie database service is temporarily unavailable',
            code=error.code,
        )
    elif error.kind is ErrorKind.GENERIC:
        body = ErrorResponse(error=error.message, code=error.code)
    elif error.kind is ErrorKind.INTERNAL:
        body = ErrorResponse(error='Internal server error',
                             message=error.message, code=error.code)
    else:
        raise AssertionError(f"Unhandled error kind: {error.kind}")
    return _json(body, status_code=error.status, headers=headers)


async def _cancel_on_disconnect(request: Request, fetch: Awaitable[T]) -> T:
    """
    Await ``fetch`` while watching the inbound connection; if the client goes
    away first the upstream call is cancelled.
    """
    task = asyncio.ensure_future(fetch)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client left %s, cancelling upstream call",
                            request.url.path)
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


async def _respond(
    request: Request,
    operation: str,
    fetch: Awaitable[BaseModel],
    on_upstream_error: Optional[Callable[[ClassifiedError], Optional[Response]]] = None
) -> Response:
    """
    Run the upstream call for a validated request and render the outcome.

    :param request: Inbound request, watched for disconnects.
    :param operation: Operation name, selects the cache policy.
    :param fetch: Upstream call producing the public payload.
    :param on_upstream_error: Optional per-operation remapping of errors.
    :return: Success response with Cache-Control, or an error response.
    """
    try:
        result = await _cancel_on_disconnect(request, fetch)
    except UpstreamError as exc:
        if on_upstream_error is not None:
            remapped = on_upstream_error(exc.error)
            if remapped is not None:
                return remapped
        return error_response(exc.error)
    except ClientDisconnected:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except Exception:
        logger.exception("Unexpected error while handling %s", operation)
        return error_response(internal())

    return _json(result, headers={'Cache-Control': cache_control(operation)})


async def _genres_envelope() -> GenresResponse:
    return GenresResponse(genres=await list_genres())


@router.get('/genres', response_model=GenresResponse, responses=ERROR_RESPONSES)
async def genres(request: Request):
    return await _respond(request, 'genres', _genres_envelope())


@router.get('/movies/', responses={400: {'model': ErrorResponse}})
async def movie_without_id():
    return rejection_response(validate_movie_id(None))


@router.get('/movies/popular', response_model=PaginatedMovies,
            responses={400: {'model': ErrorResponse}, **ERROR_RESPONSES})
async def popular_movies(
    request: Request,
    page: Optional[str] = None,
    genre: Optional[str] = None
):
    page_number = validate_page(page)
    if isinstance(page_number, ValidationRejection):
        return rejection_response(page_number)
    genre_ids = validate_genres(genre)
    if isinstance(genre_ids, ValidationRejection):
        return rejection_response(genre_ids)

    logger.info("Popular movies page=%s genres=%s", page_number, genre_ids)
    return await _respond(request, 'popular', list_popular(page_number, genre_ids))


@router.get('/movies/search', response_model=PaginatedMovies,
            responses={400: {'model': ErrorResponse}, **ERROR_RESPONSES})
async def search(
    request: Request,
    q: Optional[str] = None,
    page: Optional[str] = None
):
    query = validate_query(q)
    if isinstance(query, ValidationRejection):
        return rejection_response(query)
    page_number = validate_page(page)
    if isinstance(page_number, ValidationRejection):
        return rejection_response(page_number)

    logger.info("Search movies q=%r page=%s", query, page_number)
    return await _respond(request, 'search', search_movies(query, page_number))


@router.get('/movies/now-playing', response_model=PaginatedMovies,
            responses={400: {'model': ErrorResponse}, **ERROR_RESPONSES})
async def now_playing(request: Request, page: Optional[str] = None):
    page_number = validate_page(page)
    if isinstance(page_number, ValidationRejection):
        return rejection_response(page_number)
    return await _respond(request, 'now_playing', list_now_playing(page_number))


@router.get('/movies/{movie_id}', response_model=Movie,
            responses={400: {'model': ErrorResponse},
                       404: {'model': ErrorResponse}, **ERROR_RESPONSES})
async def movie_detail(request: Request, movie_id: str):
    checked_id = validate_movie_id(movie_id)
    if isinstance(checked_id, ValidationRejection):
        return rejection_response(checked_id)

    def not_found(error: ClassifiedError) -> Optional[Response]:
        if error.kind is ErrorKind.GENERIC and error.status == 404:
            return _json(
                ErrorResponse(
                    error='Movie not found',
                    message=f"Movie with ID {checked_id} was not found",
                    code='MOVIE_NOT_FOUND',
                ),
                status_code=404,
            )
        return None

    return await _respond(request, 'movie_detail',
                          get_movie_detail(checked_id), not_found)


@router.get('/health', response_model=HealthResponse)
async def health():
    body = HealthResponse(
        status='healthy',
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=HealthEnvironment(
            has_api_key=bool(settings.TMDB_API_KEY.strip()),
            environment=settings.ENVIRONMENT,
            tmdb_base_url=settings.TMDB_BASE_URL,
        ),
    )
    return _json(body, headers={'Cache-Control': 'no-store'})


async def preflight() -> Response:
    return Response(status_code=200, headers=PREFLIGHT_HEADERS)


for _path in ('/genres', '/movies/', '/movies/popular', '/movies/search',
              '/movies/now-playing', '/movies/{movie_id}', '/health'):
    router.add_api_route(_path, preflight, methods=['OPTIONS'],
                         include_in_schema=False)

app.include_router(router)


def run():
    uvicorn.run(
        "watchify_api.main:app",
        host='0.0.0.0',
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == '__main__':
    run()
