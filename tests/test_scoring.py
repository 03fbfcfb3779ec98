import math

import pytest

from podcast_rag.scoring import cosine_similarity, extract_keywords, lexical_score


class TestCosineSimilarity:
    def test_identical_vectors(self):
        a = [0.3, -1.2, 4.0, 0.01]
        assert cosine_similarity(a, a) == pytest.approx(1.0)

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize(
        "a,b",
        [
            ([], [1.0]),
            ([1.0], []),
            (None, [1.0]),
            ([1.0, 2.0], [1.0, 2.0, 3.0]),
            ([0.0, 0.0], [1.0, 1.0]),
        ],
    )
    def test_degenerate_inputs_score_zero(self, a, b):
        assert cosine_similarity(a, b) == 0.0

    def test_scale_invariant(self):
        a = [1.0, 2.0, 3.0]
        b = [2.0, 4.0, 6.5]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity([x * 10 for x in a], b))
        assert not math.isnan(cosine_similarity(a, b))


class TestLexicalScore:
    def test_keywords_drop_short_words_and_stopwords(self):
        assert extract_keywords("How do I raise money?") == ["raise", "money"]
        assert extract_keywords("money, MONEY and money") == ["money"]

    @pytest.mark.parametrize("query", ["", "   ", "a an of", "the and how", "is it ok?"])
    def test_queries_without_keywords_score_zero(self, query):
        assert lexical_score(query, "the and how of money and markets") == 0.0

    def test_empty_text_scores_zero(self):
        assert lexical_score("restaurant costs", "") == 0.0

    def test_length_weighted_frequency(self):
        # raise: 0 hits, money: 1 hit * 0.5; normalized by 2 keywords * 2
        score = lexical_score("How do I raise money?", "Startup: Raising money is hard. You need a strong pitch.")
        assert score == pytest.approx(0.125)

    def test_exact_phrase_bonus(self):
        with_phrase = lexical_score("strong pitch", "You need a strong pitch.")
        without_phrase = lexical_score("strong pitch", "A pitch that is strong.")
        assert with_phrase == pytest.approx((0.6 + 0.5 + 2.0) / 4)
        assert without_phrase == pytest.approx((0.6 + 0.5) / 4)

    def test_phrase_bonus_is_configurable(self):
        low = lexical_score("strong pitch", "You need a strong pitch.", phrase_bonus=0.0)
        assert low == pytest.approx(1.1 / 4)

    def test_low_coverage_is_halved(self):
        # 1 of 4 keywords present (< 30% coverage)
        score = lexical_score("restaurant kitchen margins inventory", "the restaurant")
        assert score == pytest.approx(1.0 * 0.5 / 8)

    def test_bounded_to_one(self):
        assert lexical_score("money", "money " * 100) == 1.0

    def test_case_insensitive(self):
        assert lexical_score("MONEY talks", "Money TALKS loudly") == lexical_score(
            "money talks", "money talks loudly"
        )
