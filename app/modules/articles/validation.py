"""Turn untyped stage payloads into typed entities.

A payload that is not an object, or lacks a field the stage cannot work
without, fails the stage with ``MalformedOutput``. Inside a valid payload,
individual findings, words and questions that miss required fields are
rejected one by one; optional fields fall back to their defaults.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.logging import get_logger
from app.modules.articles.models import (
    Discovery,
    GrammarPoint,
    PassageDraft,
    QuizItemDraft,
    QuizSet,
    SourceFinding,
    VocabularyCandidate,
    WritingSystem,
)
from app.modules.llm.errors import MalformedOutput


logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _require_object(payload: Any, stage: str) -> dict:
    if not isinstance(payload, dict):
        raise MalformedOutput(
            f"{stage}: expected a JSON object, got {type(payload).__name__}",
            excerpt=json.dumps(payload, ensure_ascii=False, default=str)[:500],
        )
    return payload


def _require_text(payload: dict, key: str, stage: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedOutput(f"{stage}: missing required field '{key}'")
    return value.strip()


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _str_list(value: Any) -> list[str]:
    return [str(v).strip() for v in _as_list(value) if v is not None and str(v).strip()]


def _accept_each(model: Type[M], items: Iterable[Any], what: str) -> list[M]:
    accepted: list[M] = []
    for raw in items:
        if not isinstance(raw, dict):
            logger.warning(f"Rejected {what}: not an object ({raw!r})")
            continue
        try:
            accepted.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Rejected {what}: {e.error_count()} invalid field(s)")
    return accepted


def _clean_finding(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw
    out = dict(raw)
    for key in ("keyFacts", "key_facts", "numbers", "quotes"):
        if key in out:
            out[key] = _str_list(out[key])
    return out


def parse_discovery(payload: Any) -> Discovery:
    data = _require_object(payload, "discovery")
    topic = _require_text(data, "topic", "discovery")
    region = _require_text(data, "region", "discovery")
    findings = _accept_each(
        SourceFinding,
        (_clean_finding(f) for f in _as_list(data.get("articles", data.get("findings")))),
        "source finding",
    )
    return Discovery(
        topic=topic,
        region=region,
        category=(data.get("category") or None),
        summary=str(data.get("summary") or "").strip(),
        findings=findings,
    )


def parse_passage(payload: Any, writing_system: WritingSystem) -> PassageDraft:
    data = _require_object(payload, "passage")
    title = _require_text(data, "title_romaji", "passage")
    body = _require_text(data, "body_romaji", "passage")

    new_words = _accept_each(
        VocabularyCandidate, _as_list(data.get("newWords")), "new word"
    )
    review_words = _accept_each(
        VocabularyCandidate, _as_list(data.get("reviewWords")), "review word"
    )
    grammar = _accept_each(GrammarPoint, _as_list(data.get("grammar_points")), "grammar point")

    def _int(key: str) -> int:
        try:
            return int(data.get(key) or 0)
        except (TypeError, ValueError):
            return 0

    return PassageDraft(
        title=title,
        body=body,
        summary=str(data.get("summary_romaji") or "").strip(),
        translation=str(data.get("translation_en") or "").strip(),
        grammar_points=grammar,
        sources_cited=_str_list(data.get("sources_cited")),
        word_count=_int("word_count"),
        new_word_count=_int("new_word_count"),
        new_words=new_words,
        review_words=review_words,
        writing_system=writing_system,
    )


def parse_quiz(payload: Any) -> QuizSet:
    # Some replies are a bare list of questions
    if isinstance(payload, list):
        payload = {"questions": payload}
    data = _require_object(payload, "quiz")
    if "questions" not in data:
        raise MalformedOutput("quiz: missing required field 'questions'")

    items: list[Any] = []
    for raw in _as_list(data.get("questions")):
        if isinstance(raw, dict) and "question" not in raw and "question_romaji" in raw:
            raw = {**raw, "question": raw["question_romaji"]}
        items.append(raw)

    questions = []
    for q in _accept_each(QuizItemDraft, items, "quiz question"):
        if q.is_free_response:
            q = q.model_copy(update={"distractors": []})
        else:
            q = q.model_copy(update={"distractors": _str_list(q.distractors)})
        questions.append(q)
    return QuizSet(questions=questions)
