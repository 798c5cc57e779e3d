from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PublicModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True
    )


class Genre(PublicModel):
    id: int = Field(gt=0)
    name: str = Field(min_length=1)


class CastMember(PublicModel):
    id: int
    name: str
    character: str
    order: int = Field(ge=0)
    profile_path: Optional[str] = None


class Movie(PublicModel):
    id: int = Field(gt=0)
    title: str
    overview: str = ''
    release_date: Optional[str] = Field(
        default=None, pattern=r'^\d{4}-\d{2}-\d{2}$')
    vote_average: float = Field(default=0.0, ge=0.0, le=10.0)
    vote_count: int = Field(default=0, ge=0)
    genres: List[Genre] = []
    runtime: Optional[int] = Field(default=None, gt=0)
    cast: List[CastMember] = []
    popularity: float = Field(default=0.0, ge=0.0)
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None


class PaginatedMovies(PublicModel):
    results: List[Movie] = Field(max_length=20)
    page: int = Field(ge=1)
    total_pages: int = Field(ge=0)
    total_results: int = Field(ge=0)


class GenresResponse(PublicModel):
    genres: List[Genre]


class ErrorResponse(PublicModel):
    error: str
    message: Optional[str] = None
    code: str
    retry_after: Optional[int] = None


class HealthEnvironment(PublicModel):
    has_api_key: bool
    environment: str
    tmdb_base_url: str


class HealthResponse(PublicModel):
    status: str
    timestamp: str
    environment: HealthEnvironment


# TMDB-native payloads, parsed before shaping

class TMDBGenre(BaseModel):
    id: int
    name: str


class TMDBGenreList(BaseModel):
    genres: List[TMDBGenre] = []


class TMDBCastMember(BaseModel):
    id: int
    name: str
    character: Optional[str] = None
    order: int = 0
    profile_path: Optional[str] = None


class TMDBCredits(BaseModel):
    cast: List[TMDBCastMember] = []


class TMDBMovie(BaseModel):
    id: int
    title: str
    overview: Optional[str] = None
    release_date: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    vote_average: Optional[float] = None
    vote_count: Optional[int] = None
    genre_ids: List[int] = []
    popularity: Optional[float] = None


class TMDBMovieDetail(TMDBMovie):
    genres: List[TMDBGenre] = []
    runtime: Optional[int] = None
    credits: TMDBCredits = TMDBCredits()


class TMDBPage(BaseModel):
    page: int
    results: List[TMDBMovie] = []
    total_pages: int = 0
    total_results: int = 0
