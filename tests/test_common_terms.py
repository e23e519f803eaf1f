import pytest

from app.modules.articles.common_terms import (
    count_markers,
    demote_common_markers,
    is_common_term,
    strip_markers,
)
from app.modules.vocabulary.normalize import fold_diacritics, normalize_key


@pytest.mark.unit
class TestCommonTerms:
    @pytest.mark.parametrize("token", ["wa", "Desu.", "SHIMASHITA", "kore,", "「koto」", "ō"])
    def test_trivial_tokens(self, token):
        assert is_common_term(token)

    @pytest.mark.parametrize("token", ["keizai", "seifu", "kaigi", "Tōkyō"])
    def test_real_vocabulary(self, token):
        assert not is_common_term(token)

    def test_demote_keeps_word_and_drops_marker(self):
        body = "Kyō no [NEW] keizai nyūsu [NEW] desu. [REVIEW] kore wa [NEW] seifu."
        assert demote_common_markers(body) == (
            "Kyō no [NEW] keizai nyūsu desu. kore wa [NEW] seifu."
        )

    def test_strip_markers_tidies_spacing(self):
        assert strip_markers("Nihon Ginkō wa [NEW] kinri o  [REVIEW] kaemasen.") == (
            "Nihon Ginkō wa kinri o kaemasen."
        )

    def test_count_markers(self):
        body = "[NEW] a [NEW] b [REVIEW] c"
        assert count_markers(body) == 2
        assert count_markers(body, "REVIEW") == 1
        assert count_markers("") == 0


@pytest.mark.unit
class TestNormalizeKey:
    def test_macrons_case_and_spacing_fold(self):
        assert normalize_key("  Tōkyō   Eki ") == "tokyo eki"
        assert normalize_key("keizai") == normalize_key("KEIZAI")

    def test_kana_voicing_survives(self):
        assert fold_diacritics("がっこう") == "がっこう"
        assert normalize_key("がっこう") != normalize_key("かっこう")

    def test_empty(self):
        assert normalize_key("") == ""
        assert normalize_key(None) == ""
