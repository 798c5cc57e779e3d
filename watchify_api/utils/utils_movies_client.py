import re
from typing import Dict, Iterable, List, Optional, Sequence
from ..schemas.movies_schemas import (
    CastMember,
    Genre,
    Movie,
    PaginatedMovies,
    TMDBCredits,
    TMDBGenreList,
    TMDBMovie,
    TMDBMovieDetail,
    TMDBPage,
)

PAGE_SIZE = 20
MAX_CAST_MEMBERS = 10

CACHE_TTL_GENRES = 86400      # 24 hours
CACHE_TTL_MOVIE = 3600        # 1 hour
CACHE_TTL_LISTING = 3600      # 1 hour

CACHE_TTLS: Dict[str, int] = {
    'genres': CACHE_TTL_GENRES,
    'movie_detail': CACHE_TTL_MOVIE,
    'popular': CACHE_TTL_LISTING,
    'search': CACHE_TTL_LISTING,
    'now_playing': CACHE_TTL_LISTING,
}

# TMDB's movie genre list. Listing payloads only carry genre ids, and
# resolving names from here keeps every listing to a single upstream call.
TMDB_MOVIE_GENRES: Dict[int, str] = {
    28: 'Action',
    12: 'Adventure',
    16: 'Animation',
    35: 'Comedy',
    80: 'Crime',
    99: 'Documentary',
    18: 'Drama',
    10751: 'Family',
    14: 'Fantasy',
    36: 'History',
    27: 'Horror',
    10402: 'Music',
    9648: 'Mystery',
    10749: 'Romance',
    878: 'Science Fiction',
    10770: 'TV Movie',
    53: 'Thriller',
    10752: 'War',
    37: 'Western',
}
UNKNOWN_GENRE_NAME = 'Unknown'

_ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def cache_control(operation: str) -> str:
    """
    Cache-Control header value advertised for a successful response.

    :param operation: One of the keys of CACHE_TTLS.
    :return: Header value, e.g. ``public, max-age=3600``.
    """
    return f"public, max-age={CACHE_TTLS[operation]}"


def map_genres(payload: TMDBGenreList) -> List[Genre]:
    """
    Map the TMDB genre list to public genres, keeping upstream order.

    :param payload: Parsed ``/genre/movie/list`` response.
    :return: List of Genre objects.
    """
    return [Genre(id=g.id, name=g.name) for g in payload.genres]


def genres_from_ids(genre_ids: Iterable[int]) -> List[Genre]:
    return [
        Genre(id=gid, name=TMDB_MOVIE_GENRES.get(gid, UNKNOWN_GENRE_NAME))
        for gid in genre_ids
        if gid > 0
    ]


def map_cast(credits: TMDBCredits, limit: int = MAX_CAST_MEMBERS) -> List[CastMember]:
    """
    Map TMDB credits to cast members in billing order.

    :param credits: Parsed credits block.
    :param limit: Maximum number of cast members to keep.
    :return: Cast members sorted by ``order`` ascending.
    """
    billed = sorted(credits.cast, key=lambda c: c.order)
    return [
        CastMember(
            id=c.id,
            name=c.name,
            character=c.character or '',
            order=max(c.order, 0),
            profile_path=c.profile_path,
        )
        for c in billed[:limit]
    ]


def _release_date(value: Optional[str]) -> Optional[str]:
    if value and _ISO_DATE.match(value):
        return value
    return None


def _vote_average(value: Optional[float]) -> float:
    return min(max(value or 0.0, 0.0), 10.0)


def map_to_movie(
    item: TMDBMovie,
    genres: List[Genre],
    cast: Optional[List[CastMember]] = None,
    runtime: Optional[int] = None
) -> Movie:
    """
    Map a TMDB movie item to the public Movie schema.

    :param item: Parsed TMDB movie (listing item or detail).
    :param genres: Genres already resolved for the item.
    :param cast: Cast members, empty for listing items.
    :param runtime: Runtime in minutes, only known for details.
    :return: Movie object.
    """
    return Movie(
        id=item.id,
        title=item.title,
        overview=item.overview or '',
        release_date=_release_date(item.release_date),
        vote_average=_vote_average(item.vote_average),
        vote_count=max(item.vote_count or 0, 0),
        genres=genres,
        runtime=runtime if runtime and runtime > 0 else None,
        cast=cast or [],
        popularity=max(item.popularity or 0.0, 0.0),
        poster_path=item.poster_path,
        backdrop_path=item.backdrop_path,
    )


def map_detail(detail: TMDBMovieDetail) -> Movie:
    genres = [Genre(id=g.id, name=g.name) for g in detail.genres]
    return map_to_movie(
        detail,
        genres,
        cast=map_cast(detail.credits),
        runtime=detail.runtime,
    )


def matches(item: TMDBMovie, genre_ids: Sequence[int]) -> bool:
    """
    Check whether a TMDB item carries every requested genre (AND semantics).

    :param item: Parsed TMDB movie item.
    :param genre_ids: Requested genre ids; empty means no filter.
    :return: True if the item carries all of them.
    """
    return set(genre_ids).issubset(item.genre_ids)


def shape_page(
    payload: TMDBPage,
    page: int,
    genre_ids: Sequence[int] = ()
) -> PaginatedMovies:
    """
    Shape a TMDB result page into the public paginated envelope.

    Items missing any requested genre are dropped. Pagination totals are
    passed through from the provider as-is, and ``page`` echoes the page
    that was requested.

    :param payload: Parsed TMDB page.
    :param page: Page number that was requested.
    :param genre_ids: Genre ids every result must carry.
    :return: PaginatedMovies object.
    """
    items = [i for i in payload.results if matches(i, genre_ids)]
    return PaginatedMovies(
        results=[
            map_to_movie(i, genres_from_ids(i.genre_ids))
            for i in items[:PAGE_SIZE]
        ],
        page=page,
        total_pages=payload.total_pages,
        total_results=payload.total_results,
    )
