import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Type, TypeVar
import httpx
from pydantic import BaseModel, ValidationError
from ..config import settings
from ..errors import (
    ClassifiedError,
    UpstreamError,
    generic,
    rate_limited,
    service_unavailable,
)
from ..schemas.movies_schemas import (
    Genre,
    Movie,
    PaginatedMovies,
    TMDBGenreList,
    TMDBMovieDetail,
    TMDBPage,
)
from ..utils.utils_movies_client import map_detail, map_genres, shape_page

logger = logging.getLogger(__name__)

BASE_URL = settings.TMDB_BASE_URL.rstrip('/')
HEADERS = {
    'Accept': 'application/json',
    'User-Agent': 'Watchify/1.0',
}

T = TypeVar('T')

_SECONDS = re.compile(r'[0-9]{1,9}')


@asynccontextmanager
async def _session(
    client: Optional[httpx.AsyncClient]
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield the injected client, or open a short lived one for a single call.

    :param client: HTTP client supplied by the caller, if any.
    """
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=settings.TMDB_TIMEOUT_SECONDS) as owned:
        yield owned


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    """
    Read a Retry-After header given in delta-seconds.

    :param value: Raw header value.
    :return: Seconds to wait, or None when absent or not an integer.
    """
    value = (value or '').strip()
    return int(value) if _SECONDS.fullmatch(value) else None


def classify_response(resp: httpx.Response) -> ClassifiedError:
    """
    Classify a non-2xx TMDB response.

    :param resp: Response returned by the provider.
    :return: ClassifiedError describing the failure.
    """
    status = resp.status_code
    if status == 429:
        return rate_limited(_parse_retry_after(resp.headers.get('Retry-After')))
    if status >= 500:
        return service_unavailable()
    if status < 400:
        # redirects are not followed; surfacing a 3xx would lack a Location
        return generic(f"Unexpected HTTP {status} from movie database")

    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    upstream_code = body.get('status_code')
    return generic(
        body.get('status_message') or f"HTTP {status}",
        status=status,
        upstream_code=upstream_code if isinstance(upstream_code, int) else None,
    )


async def _fetch_json(
    client: httpx.AsyncClient,
    path: str,
    params: Optional[Dict[str, Any]] = None
) -> Any:
    """
    Perform one GET against TMDB and return the decoded JSON body.

    Authentication and language are injected here. Any failure is raised as
    an UpstreamError carrying its classification; nothing is retried.

    :param client: HTTP client for making API requests.
    :param path: Endpoint path relative to the TMDB base URL.
    :param params: Operation specific query parameters.
    :return: Decoded JSON payload.
    """
    query = {'api_key': settings.TMDB_API_KEY, 'language': settings.TMDB_LANGUAGE}
    query.update(params or {})
    logger.debug("TMDB GET %s %s", path,
                 {k: v for k, v in query.items() if k != 'api_key'})

    try:
        resp = await client.get(f"{BASE_URL}{path}", params=query, headers=HEADERS)
    except httpx.TimeoutException as exc:
        logger.warning("TMDB GET %s timed out: %s", path, exc)
        raise UpstreamError(service_unavailable('Upstream request timed out')) from exc
    except httpx.TransportError as exc:
        logger.warning("TMDB GET %s unreachable: %s", path, exc)
        raise UpstreamError(service_unavailable()) from exc
    except httpx.HTTPError as exc:
        logger.warning("TMDB GET %s failed: %s", path, exc)
        raise UpstreamError(generic(f"TMDB request failed: {exc}")) from exc

    if not 200 <= resp.status_code < 300:
        error = classify_response(resp)
        logger.warning("TMDB GET %s -> %s (%s)", path, resp.status_code, error.code)
        raise UpstreamError(error)

    try:
        return resp.json()
    except ValueError as exc:
        logger.warning("TMDB GET %s returned non-JSON body", path)
        raise UpstreamError(generic('TMDB returned a non-JSON response')) from exc


def _shape(
    build: Callable[..., T],
    model: Type[BaseModel],
    payload: Any,
    *args: Any
) -> T:
    """
    Parse a TMDB payload into ``model`` and pass it to ``build``.

    :param build: Shaper turning the parsed payload into a public object.
    :param model: Pydantic model describing the TMDB payload.
    :param payload: Decoded JSON body.
    :return: Whatever ``build`` returns.
    """
    try:
        return build(model.model_validate(payload), *args)
    except ValidationError as exc:
        logger.warning("Unexpected TMDB payload for %s: %s", model.__name__, exc)
        raise UpstreamError(
            generic('Unexpected response from movie database')) from exc


async def list_genres(client: Optional[httpx.AsyncClient] = None) -> List[Genre]:
    """
    List TMDB movie genres in upstream order.

    :param client: Optional HTTP client to reuse.
    :return: List of Genre objects.
    """
    async with _session(client) as c:
        payload = await _fetch_json(c, '/genre/movie/list')
    return _shape(map_genres, TMDBGenreList, payload)


async def get_movie_detail(
    movie_id: int,
    client: Optional[httpx.AsyncClient] = None
) -> Movie:
    """
    Fetch one movie with its cast. Credits are appended to the detail
    request so this stays a single upstream call.

    :param movie_id: TMDB movie id.
    :param client: Optional HTTP client to reuse.
    :return: Movie object.
    """
    async with _session(client) as c:
        payload = await _fetch_json(
            c, f"/movie/{movie_id}", {'append_to_response': 'credits'}
        )
    return _shape(map_detail, TMDBMovieDetail, payload)


async def list_popular(
    page: int,
    genre_ids: Optional[Sequence[int]] = None,
    client: Optional[httpx.AsyncClient] = None
) -> PaginatedMovies:
    """
    List popular movies, optionally restricted to movies carrying every one
    of ``genre_ids``.

    With a genre filter the discover endpoint is queried with TMDB's
    comma (AND) form, and the page is filtered again locally so that a
    result missing any requested genre never gets through.

    :param page: Page number in [1, 1000].
    :param genre_ids: Genre ids to require, if any.
    :param client: Optional HTTP client to reuse.
    :return: PaginatedMovies object.
    """
    genre_ids = list(genre_ids or [])
    params: Dict[str, Any] = {'page': page, 'include_adult': 'false'}
    endpoint = '/movie/popular'
    if genre_ids:
        endpoint = '/discover/movie'
        params['with_genres'] = ','.join(str(g) for g in genre_ids)
        params['sort_by'] = 'popularity.desc'

    async with _session(client) as c:
        payload = await _fetch_json(c, endpoint, params)
    return _shape(shape_page, TMDBPage, payload, page, genre_ids)


async def search_movies(
    query: str,
    page: int,
    client: Optional[httpx.AsyncClient] = None
) -> PaginatedMovies:
    async with _session(client) as c:
        payload = await _fetch_json(
            c, '/search/movie',
            {'query': query, 'page': page, 'include_adult': 'false'}
        )
    return _shape(shape_page, TMDBPage, payload, page)


async def list_now_playing(
    page: int,
    client: Optional[httpx.AsyncClient] = None
) -> PaginatedMovies:
    async with _session(client) as c:
        payload = await _fetch_json(
            c, '/movie/now_playing', {'page': page, 'include_adult': 'false'}
        )
    return _shape(shape_page, TMDBPage, payload, page)
