import re

from conftest import tmdb_movie, tmdb_page
from watchify_api.schemas.movies_schemas import (
    TMDBCredits,
    TMDBGenreList,
    TMDBMovie,
    TMDBMovieDetail,
    TMDBPage,
)
from watchify_api.utils.utils_movies_client import (
    cache_control,
    genres_from_ids,
    map_cast,
    map_detail,
    map_genres,
    map_to_movie,
    matches,
    shape_page,
)


# --- cache policy ---


def test_cache_control_per_operation():
    assert cache_control("genres") == "public, max-age=86400"
    assert cache_control("movie_detail") == "public, max-age=3600"
    assert cache_control("popular") == "public, max-age=3600"
    assert cache_control("search") == "public, max-age=3600"
    assert cache_control("now_playing") == "public, max-age=3600"


# --- genres ---


def test_map_genres_keeps_upstream_order():
    payload = TMDBGenreList.model_validate(
        {"genres": [{"id": 35, "name": "Comedy"}, {"id": 28, "name": "Action"}]}
    )
    assert [g.id for g in map_genres(payload)] == [35, 28]


def test_genres_from_ids_resolves_known_and_unknown_ids():
    genres = genres_from_ids([28, 424242])
    assert genres[0].name == "Action"
    assert genres[1].id == 424242
    assert genres[1].name == "Unknown"


# --- cast ---


def test_map_cast_sorts_by_billing_order_and_limits():
    credits = TMDBCredits.model_validate({"cast": [
        {"id": i, "name": f"Actor {i}", "character": f"Role {i}",
         "order": 20 - i, "profile_path": None}
        for i in range(15)
    ]})
    cast = map_cast(credits)
    assert len(cast) == 10
    assert [c.order for c in cast] == sorted(c.order for c in cast)
    assert cast[0].order == 6


def test_map_cast_missing_character_becomes_empty_string():
    credits = TMDBCredits.model_validate(
        {"cast": [{"id": 1, "name": "Brad Pitt", "order": 0}]})
    member = map_cast(credits)[0]
    assert member.character == ""
    assert member.model_dump(by_alias=True)["profilePath"] is None


# --- movies ---


def test_map_to_movie_uses_camel_case_public_names():
    movie = map_to_movie(TMDBMovie.model_validate(tmdb_movie(550, [18])), [])
    dumped = movie.model_dump(by_alias=True)
    assert dumped["releaseDate"] == "1999-10-15"
    assert dumped["voteAverage"] == 8.4
    assert dumped["posterPath"] == "/poster550.jpg"
    assert dumped["runtime"] is None
    assert dumped["cast"] == []


def test_map_to_movie_normalizes_odd_upstream_values():
    item = TMDBMovie.model_validate(tmdb_movie(
        1, release_date="", vote_average=11.2, vote_count=None,
        popularity=None, overview=None))
    movie = map_to_movie(item, [], runtime=0)
    assert movie.release_date is None
    assert movie.vote_average == 10.0
    assert movie.vote_count == 0
    assert movie.popularity == 0.0
    assert movie.overview == ""
    assert movie.runtime is None


def test_map_detail_includes_genres_runtime_and_cast():
    detail = TMDBMovieDetail.model_validate({
        **tmdb_movie(550),
        "genres": [{"id": 18, "name": "Drama"}],
        "runtime": 139,
        "credits": {"cast": [
            {"id": 819, "name": "Edward Norton", "character": "Narrator",
             "order": 1, "profile_path": "/norton.jpg"},
            {"id": 287, "name": "Brad Pitt", "character": "Tyler Durden",
             "order": 0, "profile_path": "/pitt.jpg"},
        ]},
    })
    movie = map_detail(detail)
    assert movie.id == 550
    assert 0 <= movie.vote_average <= 10
    assert re.match(r"^\d{4}-\d{2}-\d{2}$", movie.release_date)
    assert movie.runtime == 139
    assert [g.name for g in movie.genres] == ["Drama"]
    assert [c.name for c in movie.cast] == ["Brad Pitt", "Edward Norton"]


# --- genre filter ---


def test_matches_requires_every_genre():
    item = TMDBMovie.model_validate(tmdb_movie(1, [28, 12, 878]))
    assert matches(item, [28, 12]) is True
    assert matches(item, [28, 35]) is False
    assert matches(item, []) is True


# --- pages ---


def test_shape_page_passes_totals_through_and_echoes_page():
    payload = TMDBPage.model_validate(
        tmdb_page([tmdb_movie(1), tmdb_movie(2)], page=3,
                  total_pages=77, total_results=1531))
    shaped = shape_page(payload, 3)
    assert shaped.page == 3
    assert shaped.total_pages == 77
    assert shaped.total_results == 1531
    assert [m.id for m in shaped.results] == [1, 2]


def test_shape_page_drops_items_missing_a_requested_genre():
    payload = TMDBPage.model_validate(tmdb_page([
        tmdb_movie(1, [28, 12]),
        tmdb_movie(2, [28]),
        tmdb_movie(3, [12, 28, 35]),
    ]))
    shaped = shape_page(payload, 1, [28, 12])
    assert [m.id for m in shaped.results] == [1, 3]
    for movie in shaped.results:
        assert {28, 12} <= {g.id for g in movie.genres}


def test_shape_page_caps_results_at_page_size():
    payload = TMDBPage.model_validate(
        tmdb_page([tmdb_movie(i) for i in range(1, 26)]))
    assert len(shape_page(payload, 1).results) == 20
