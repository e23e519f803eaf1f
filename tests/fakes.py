"""Scripted generator and canned stage payloads shared by the tests."""

from __future__ import annotations

import json
from typing import Any

from app.modules.llm.client import GeneratorReply, GeneratorRequest, TextGenerator


class ScriptedGenerator(TextGenerator):
    """Serves replies in order.

    A reply may be a string (final text), a ``GeneratorReply``, an exception
    instance to raise, or an async callable taking ``(request, messages)``.
    """

    def __init__(self, *replies: Any):
        self.replies = list(replies)
        self.calls: list[tuple[GeneratorRequest, list[dict[str, Any]]]] = []

    async def complete(
        self, request: GeneratorRequest, messages: list[dict[str, Any]]
    ) -> GeneratorReply:
        self.calls.append((request, [dict(m) for m in messages]))
        if not self.replies:
            raise AssertionError("generator called more often than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return await reply(request, messages)
        if isinstance(reply, str):
            return GeneratorReply(text=reply, stop_reason="end_turn")
        return reply


def paused(text: str = "") -> GeneratorReply:
    return GeneratorReply(
        text=text,
        paused=True,
        content=[{"type": "text", "text": text}],
        stop_reason="pause_turn",
    )


def discovery_payload(**overrides) -> dict:
    payload = {
        "topic": "Bank of Japan holds interest rates",
        "region": "japan",
        "category": "finance",
        "articles": [
            {
                "headline": "BOJ keeps rates unchanged",
                "source": "NHK",
                "url": "https://www3.nhk.or.jp/news/example",
                "date": "2026-10-18",
                "keyFacts": ["Rates stay at 0.5%", "Next meeting in December"],
                "numbers": ["0.5%"],
                "quotes": [],
            },
            {
                "headline": "Yen weakens after BOJ decision",
                "source": "Nikkei",
                "keyFacts": ["Yen falls against the dollar"],
            },
        ],
        "summary": "The Bank of Japan left interest rates unchanged.",
    }
    payload.update(overrides)
    return payload


def passage_payload(**overrides) -> dict:
    payload = {
        "title_romaji": "Nihon Ginkō no kettei",
        "summary_romaji": "Nihon Ginkō wa [NEW] kinri o kaemasen deshita.",
        "body_romaji": (
            "Kyō no [NEW] keizai nyūsu [NEW] desu. [NEW] Seifu to Nihon Ginkō wa "
            "[REVIEW] kaigi o hirakimashita."
        ),
        "translation_en": "Today's economic news. The government and the BOJ held a meeting.",
        "grammar_points": [
            {"pattern": "~mashita", "level": "N5", "explanation": "polite past", "examples": []}
        ],
        "sources_cited": ["NHK", "Nikkei"],
        "word_count": 14,
        "new_word_count": 3,
        "newWords": [
            {
                "word_romaji": "keizai",
                "word_romaji_macron": "keizai",
                "word_kanji": "経済",
                "word_kana": "けいざい",
                "meaning_en": "economy",
                "part_of_speech": "noun",
                "jlpt_level": "N3",
                "category": "finance",
                "context_sentence": "Kyō no keizai nyūsu desu.",
            },
            {
                "word_romaji": "seifu",
                "word_romaji_macron": "seifu",
                "word_kanji": "政府",
                "word_kana": "せいふ",
                "meaning_en": "government",
                "part_of_speech": "noun",
                "jlpt_level": "N3",
            },
            {"word_romaji_macron": "desu", "meaning_en": "to be"},
            {"word_romaji_macron": "kinri"},
        ],
        "reviewWords": [
            {
                "word_romaji_macron": "kaigi",
                "word_kana": "かいぎ",
                "word_kanji": "会議",
                "meaning_en": "meeting",
                "context_sentence": "Seifu wa kaigi o hirakimashita.",
            }
        ],
    }
    payload.update(overrides)
    return payload


def quiz_payload(**overrides) -> dict:
    payload = {
        "questions": [
            {
                "type": "meaning",
                "question_romaji": "'Keizai' wa eigo de nan desu ka?",
                "question_en": "What does 'keizai' mean?",
                "correct_answer": "economy",
                "distractors": ["weather", "school", "travel"],
                "hint": "money and markets",
                "vocabulary_word": "keizai",
            },
            {
                "type": "translation",
                "question_romaji": "Translate: Seifu wa kaigi o hirakimashita.",
                "correct_answer": "The government held a meeting.",
                "distractors": ["should be dropped"],
            },
            {"type": "meaning", "question_romaji": "No answer here"},
        ]
    }
    payload.update(overrides)
    return payload


def scripted_run(discovery=None, passage=None, quiz=None) -> ScriptedGenerator:
    """Generator scripted for one complete pipeline run."""
    return ScriptedGenerator(
        json.dumps(discovery or discovery_payload(), ensure_ascii=False),
        # Passage wrapped in prose and a fence, the way models often reply
        "Here is the article:\n```json\n"
        + json.dumps(passage or passage_payload(), ensure_ascii=False)
        + "\n```",
        json.dumps(quiz or quiz_payload(), ensure_ascii=False),
    )
