import itertools

from filmfusion.infra.cache_keys import CacheKeys, CacheTTL

BUILDERS = {
    'trending': (CacheKeys.trending, [('all', 1), ('all', 2), ('anime', 1)]),
    'popular': (CacheKeys.popular, [('all', 1), ('k_drama', 1), ('all', 3)]),
    'category': (CacheKeys.category_content, [('hollywood', 1), ('hollywood', 2), ('south', 1)]),
    'details': (CacheKeys.content_details, [('movie', 550), ('tv', 550), ('movie', 551)]),
    'search': (CacheKeys.search, [('matrix', 1), ('matrix', 2), ('matrix reloaded', 1)]),
    'genres': (CacheKeys.genres, [('movie',), ('tv',)]),
    'similar': (CacheKeys.similar, [(550, 1), (550, 2), (551, 1)]),
    'recommendations': (CacheKeys.user_recommendations, [(1, 1), (1, 2), (2, 1)]),
    'watchlist': (CacheKeys.user_watchlist, [(1, 1), (1, 2), (2, 1)]),
    'ratings': (CacheKeys.user_ratings, [(1, 1), (1, 2), (2, 1)]),
    'stats': (CacheKeys.user_stats, [(1,), (2,)]),
}


def all_keys():
    return [
        (kind, params, builder(*params))
        for kind, (builder, param_sets) in BUILDERS.items()
        for params in param_sets
    ]


def test_same_parameters_same_key():
    for kind, params, key in all_keys():
        builder = BUILDERS[kind][0]
        assert builder(*params) == key


def test_different_parameters_different_keys():
    keys = all_keys()
    for (kind_a, params_a, key_a), (kind_b, params_b, key_b) in itertools.combinations(keys, 2):
        assert key_a != key_b, f"{kind_a}{params_a} collides with {kind_b}{params_b}"


def test_user_scoped_keys_do_not_overlap_between_resources():
    assert CacheKeys.user_watchlist(7, 1) != CacheKeys.user_ratings(7, 1)
    assert CacheKeys.user_recommendations(7, 1) != CacheKeys.user_watchlist(7, 1)


def test_separator_in_free_text_cannot_collide():
    # without encoding both would be "search:a:1:2"
    assert CacheKeys.search("a:1", 2) != CacheKeys.search("a", 12)
    assert ":" not in CacheKeys.search("a:1", 2)[len("search:"):].rsplit(":", 1)[0]
    assert CacheKeys.trending("x:1", 1) != CacheKeys.trending("x", 1)


def test_numeric_dimensions_are_normalized():
    assert CacheKeys.user_recommendations(3, "1") == CacheKeys.user_recommendations(3, 1)
    assert CacheKeys.content_details("movie", "550") == CacheKeys.content_details("movie", 550)


def test_key_format():
    assert CacheKeys.trending("all", 1) == "trending:all:1"
    assert CacheKeys.user_stats(42) == "stats:42"
    assert CacheKeys.content_details("tv", 1399) == "details:tv:1399"


def test_ttl_table():
    assert CacheTTL.TRENDING == 1800
    assert CacheTTL.POPULAR == 3600
    assert CacheTTL.CATEGORY_CONTENT == 3600
    assert CacheTTL.CONTENT_DETAILS == 86400
    assert CacheTTL.SEARCH == 1800
    assert CacheTTL.GENRES == 86400
    assert CacheTTL.USER_RECOMMENDATIONS == 1800
    assert CacheTTL.USER_WATCHLIST == 300
    assert CacheTTL.USER_RATINGS == 300
    assert CacheTTL.USER_STATS == 600
    assert CacheTTL.SIMILAR == 3600
