import pytest

from bulk_ingest import CatalogEntry, MatchVocabulary, find_best_match, similarity
from bulk_ingest.matching import normalize_text, tokenize, truncate_query

CATALOG = [
    {"id": "p1", "name": "CAPCUT PRIVATE 1 BULAN", "price": 25000},
    {"id": "p2", "name": "NETFLIX SHARING 4U", "price": 30000},
]


def test_matches_capcut_above_threshold():
    match = find_best_match("capcut private 1 bulan", CATALOG)

    assert match is not None
    assert match.id == "p1"
    assert match.name == "CAPCUT PRIVATE 1 BULAN"
    assert match.price == 25000
    assert match.similarity >= 0.68


def test_unrelated_text_has_no_match():
    assert find_best_match("random unrelated text", CATALOG) is None


def test_trailing_customer_name_is_ignored():
    match = find_best_match("CapCut Private 1 Bulan andika", CATALOG)

    assert match is not None
    assert match.id == "p1"


def test_spaced_brand_names_are_unified():
    match = find_best_match("cap cut private 1 bulan", CATALOG)

    assert match is not None
    assert match.id == "p1"
    assert normalize_text("Net Flix") == "netflix"
    assert normalize_text("GO-PAY top up") == "gopay top up"


def test_normalize_text_folds_punctuation_and_unicode():
    assert normalize_text("  Capcut PRO\u200b (1 Bulan)!! ") == "capcut pro 1 bulan"
    assert normalize_text("\u201cNetflix\u201d\uff0cSharing") == "netflix sharing"


def test_truncate_query_cuts_after_first_duration():
    tokens = tokenize("capcut private 1 bulan andika 2 minggu")

    assert truncate_query(tokens) == ["capcut", "private", "1", "bulan"]
    assert truncate_query(["spotify", "family"]) == ["spotify", "family"]


def test_product_made_of_noise_words_still_scores():
    score = similarity("sharing 4u 1 bulan", "SHARING 4U")

    # Both sharing and 4u overlap; 1 and bulan are dropped as noise.
    assert score == pytest.approx(1.0)
    match = find_best_match("sharing 4u 1 bulan", [{"id": "s", "name": "SHARING 4U"}])
    assert match is not None
    assert match.id == "s"


def test_qualifier_in_product_name_distinguishes_candidates():
    catalog = [
        {"id": "share", "name": "Netflix Sharing 1 Bulan", "price": 30000},
        {"id": "priv", "name": "Netflix Private 1 Bulan", "price": 120000},
    ]

    assert find_best_match("netflix private 1 bulan", catalog).id == "priv"
    assert find_best_match("netflix sharing 1 bulan", catalog).id == "share"


def test_similarity_bonuses():
    # Exact token sets: Jaccard 1.0 plus bonuses, capped.
    assert similarity("spotify family", "Spotify Family") == 1.0
    # Product tokens are a subset of the query: 2/3 + subset + contains.
    assert similarity("spotify family premium", "spotify family") == pytest.approx(2 / 3 + 0.15)
    # Subset but not a contiguous substring: 2/3 + subset only.
    assert similarity("spotify premium family", "spotify family") == pytest.approx(2 / 3 + 0.10)
    assert similarity("abc", "xyz") == 0.0


def test_first_of_equal_scores_wins():
    catalog = [
        {"id": "a", "name": "Canva Pro"},
        {"id": "b", "name": "canva pro"},
    ]

    assert find_best_match("canva pro", catalog).id == "a"


def test_threshold_is_configurable():
    catalog = [{"id": "x", "name": "Spotify Family Premium Plan"}]

    # 2 of 4 tokens: 0.5 plus nothing.
    assert find_best_match("spotify family", catalog) is None
    match = find_best_match("spotify family", catalog, threshold=0.5)
    assert match is not None
    assert match.similarity == pytest.approx(0.5)


def test_empty_query_or_catalog():
    assert find_best_match("", CATALOG) is None
    assert find_best_match("capcut", []) is None


def test_accepts_catalog_entries_and_mappings():
    catalog = [
        CatalogEntry(id="e1", name="Canva Pro 1 Bulan", price=15000),
        {"id": 7, "name": "Vidio Platinum 1 Bulan", "price": None},
    ]

    canva = find_best_match("canva pro 1 bulan", catalog)
    vidio = find_best_match("vidio platinum 1 bulan", catalog)

    assert canva is not None and canva.id == "e1"
    assert vidio is not None
    assert vidio.id == "7"
    assert vidio.price == 0.0


def test_custom_vocabulary():
    vocabulary = MatchVocabulary(
        durations=frozenset({"tahun"}),
        noise_tokens=frozenset({"tahun", "paket"}),
        synonyms=(("you tube", "youtube"),),
    )
    catalog = [{"id": "yt", "name": "YouTube Premium"}]

    match = find_best_match("paket you tube premium tahun budi", catalog, vocabulary=vocabulary)

    assert match is not None
    assert match.id == "yt"
    # The default vocabulary knows neither the synonym nor the duration.
    assert find_best_match("paket you tube premium tahun budi", catalog) is None
