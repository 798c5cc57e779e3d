"""
Validation of raw request inputs.

Every validator is pure and returns either the coerced value or a
ValidationRejection. Bad input is an expected outcome here, so nothing in
this module raises for it.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Union

MIN_PAGE = 1
MAX_PAGE = 1000
MAX_QUERY_LENGTH = 100

# ASCII digits only, short enough that int() never hits the digit limit
_INTEGER = re.compile(r'[0-9]{1,9}')


@dataclass(frozen=True)
class ValidationRejection:
    error: str
    message: str
    code: str
    status: int = 400


def _parse_positive_int(raw: str) -> Optional[int]:
    """
    Parse a plain base-10 integer literal greater than zero.

    :param raw: Already trimmed text.
    :return: The integer, or None if the text is not a positive integer.
    """
    if not _INTEGER.fullmatch(raw):
        return None
    value = int(raw)
    return value if value > 0 else None


def validate_page(raw: Optional[str]) -> Union[int, ValidationRejection]:
    """
    Coerce the ``page`` query parameter.

    :param raw: Raw query string value, None when absent.
    :return: Page number in [1, 1000] (default 1) or a rejection.
    """
    if raw is None or raw == '':
        return MIN_PAGE
    page = _parse_positive_int(raw.strip())
    if page is None or page < MIN_PAGE or page > MAX_PAGE:
        return ValidationRejection(
            error='Invalid page number',
            message=f'Page must be between {MIN_PAGE} and {MAX_PAGE}',
            code='INVALID_PAGE',
        )
    return page


def validate_genres(raw: Optional[str]) -> Union[List[int], ValidationRejection]:
    """
    Coerce the comma separated ``genre`` query parameter.

    An absent or empty value means no filter. A non-empty value that does
    not yield at least one positive integer is rejected.

    :param raw: Raw query string value, None when absent.
    :return: De-duplicated genre ids in request order, or a rejection.
    """
    if raw is None or raw == '':
        return []

    rejection = ValidationRejection(
        error='Invalid genre ID',
        message='Genre ID must be a positive integer or comma-separated '
                'list of positive integers',
        code='INVALID_GENRE',
    )
    segments = [s.strip() for s in raw.split(',')]
    segments = [s for s in segments if s]
    if not segments:
        return rejection

    genre_ids: List[int] = []
    for segment in segments:
        genre_id = _parse_positive_int(segment)
        if genre_id is None:
            return rejection
        if genre_id not in genre_ids:
            genre_ids.append(genre_id)
    return genre_ids


def validate_query(raw: Optional[str]) -> Union[str, ValidationRejection]:
    """
    Coerce the ``q`` search parameter. The length bound applies to the raw
    parameter; the trimmed text is what gets sent upstream.
    """
    raw = raw or ''
    query = raw.strip()
    if not query or len(raw) > MAX_QUERY_LENGTH:
        return ValidationRejection(
            error='Invalid search query',
            message=f'Search query must be between 1 and {MAX_QUERY_LENGTH} characters',
            code='INVALID_QUERY',
        )
    return query


def validate_movie_id(raw: Optional[str]) -> Union[int, ValidationRejection]:
    if raw is None or not raw.strip():
        return ValidationRejection(
            error='Movie ID is required',
            message='Movie ID must be provided in the URL path',
            code='MISSING_MOVIE_ID',
        )
    movie_id = _parse_positive_int(raw.strip())
    if movie_id is None:
        return ValidationRejection(
            error='Invalid movie ID',
            message='Movie ID must be a positive integer',
            code='INVALID_MOVIE_ID',
        )
    return movie_id
