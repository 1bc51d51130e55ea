"""FilmFusion: movie/TV discovery API with cached TMDB access and collaborative filtering"""

__version__ = "1.0.0"
