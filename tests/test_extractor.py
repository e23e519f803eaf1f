import pytest

from app.modules.llm.errors import MalformedOutput
from app.modules.llm.extractor import EXCERPT_CHARS, extract_json, find_balanced


@pytest.mark.unit
class TestExtractJson:
    def test_plain_json(self):
        assert extract_json('{"topic": "rates", "n": 2}') == {"topic": "rates", "n": 2}

    def test_fenced_block(self):
        text = 'Sure!\n```json\n{"title": "Kettei"}\n```\nLet me know.'
        assert extract_json(text) == {"title": "Kettei"}

    def test_object_inside_prose(self):
        text = 'Here you go: {"topic": "x", "region": "japan"} hope it helps'
        assert extract_json(text) == {"topic": "x", "region": "japan"}

    def test_brackets_inside_strings_are_ignored(self):
        text = 'note {"text": "a } b { c", "n": 1} trailing } noise'
        assert extract_json(text) == {"text": "a } b { c", "n": 1}

    def test_escaped_quotes_inside_strings(self):
        text = 'x {"quote": "he said \\"}\\" loudly", "ok": true} y'
        assert extract_json(text) == {"quote": 'he said "}" loudly', "ok": True}

    def test_trailing_separators_repaired(self):
        text = '{"words": ["keizai", "seifu",], "count": 2,}'
        assert extract_json(text) == {"words": ["keizai", "seifu"], "count": 2}

    def test_fence_inside_prose_with_trailing_commas(self):
        text = 'Here it is:\n```json\n{"a": [1, 2,], "b": "x",}\n```\nThanks!'
        assert extract_json(text) == {"a": [1, 2], "b": "x"}

    def test_adjacent_objects_repaired(self):
        text = '{"questions": [{"q": "a"} {"q": "b"}]}'
        assert extract_json(text) == {"questions": [{"q": "a"}, {"q": "b"}]}

    def test_missing_line_separators_repaired(self):
        text = '{\n"title": "Kettei"\n"word_count": 200\n"tags": []\n"done": true\n}'
        assert extract_json(text) == {
            "title": "Kettei",
            "word_count": 200,
            "tags": [],
            "done": True,
        }

    def test_array_when_no_object(self):
        assert extract_json("Result: [1, 2, 3] as requested") == [1, 2, 3]

    def test_unparseable_text_raises_with_excerpt(self):
        text = "I could not find any news today. " * 40
        with pytest.raises(MalformedOutput) as exc:
            extract_json(text)
        assert exc.value.excerpt == text[:EXCERPT_CHARS]
        assert len(exc.value.excerpt) == EXCERPT_CHARS

    def test_empty_text_raises(self):
        with pytest.raises(MalformedOutput):
            extract_json("")


@pytest.mark.unit
class TestFindBalanced:
    def test_returns_first_top_level_span(self):
        assert find_balanced('a {"x": {"y": 1}} {"z": 2}') == '{"x": {"y": 1}}'

    def test_unbalanced_returns_none(self):
        assert find_balanced('{"x": {"y": 1}') is None

    def test_no_opening_returns_none(self):
        assert find_balanced("plain text") is None
