from collections.abc import Iterable

from reelmatch.models.content import Genre, MediaType

MOVIE_GENRES = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
}

TV_GENRES = {
    10759: "Action & Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    10762: "Kids",
    9648: "Mystery",
    10763: "News",
    10764: "Reality",
    10765: "Sci-Fi & Fantasy",
    10766: "Soap",
    10767: "Talk",
    10768: "War & Politics",
    37: "Western",
}


def genre_table(media_type: MediaType) -> dict[int, str]:
    return TV_GENRES if media_type == "tv" else MOVIE_GENRES


def genres_from_ids(genre_ids: Iterable[int], media_type: MediaType) -> list[Genre]:
    """Resolve listing ``genre_ids`` into named genres. Unknown ids keep a None name."""
    table = genre_table(media_type)
    # Shared ids (Animation, Drama, ...) are valid for both tables
    fallback = MOVIE_GENRES if media_type == "tv" else TV_GENRES
    return [Genre(id=gid, name=table.get(gid) or fallback.get(gid)) for gid in genre_ids]
