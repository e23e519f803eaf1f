"""Prompts and generator calls for the three article stages.

Provides:
- async discover_sources(...) -> Discovery
- async draft_passage(...) -> PassageDraft
- async generate_quiz(...) -> QuizSet
"""

from __future__ import annotations

import json
from datetime import date
from typing import Optional, Sequence

from app.core.logging import get_logger
from app.modules.articles.common_terms import (
    count_markers,
    demote_common_markers,
    is_common_term,
    strip_markers,
)
from app.modules.articles.gateway import KnownWord, RecentArticle
from app.modules.articles.models import (
    Discovery,
    LearnerConfig,
    PassageDraft,
    QuizSet,
    VocabularyCandidate,
    WritingSystem,
)
from app.modules.articles.templates import TemplateProvider
from app.modules.articles.validation import parse_discovery, parse_passage, parse_quiz
from app.modules.llm.client import GeneratorRequest, TextGenerator
from app.modules.llm.errors import EmptyGeneration, NoFindings
from app.modules.llm.extractor import extract_json
from app.modules.llm.retry import ContinuationSession, RetryPolicy


logger = get_logger(__name__)

DISCOVERY_MAX_SEARCHES = 3
DISCOVERY_MAX_TOKENS = 4096
PASSAGE_MAX_TOKENS = 6144
PASSAGE_TEMPERATURE = 0.8
QUIZ_MAX_TOKENS = 3072
KNOWN_WORDS_IN_PROMPT = 30


# ---------------------------------------------------------------------------
# Stage 1: topic + source discovery
# ---------------------------------------------------------------------------

DISCOVERY_OUTPUT = {
    "topic": "specific story description (not a vague category)",
    "region": "region",
    "category": "the category from the learner's topics list",
    "articles": [
        {
            "headline": "...",
            "source": "...",
            "url": "...",
            "date": "...",
            "keyFacts": ["..."],
            "numbers": ["..."],
            "quotes": ["..."],
        }
    ],
    "summary": "2-3 sentence overview",
}


def _format_recent(recent: Sequence[RecentArticle]) -> str:
    lines = [
        f'- "{a.topic}" ({a.region}, category: {a.category or "unknown"})' for a in recent
    ]
    return "\n".join(lines) or "  (none yet, this is their first article)"


def build_discovery_request(
    config: LearnerConfig,
    *,
    category: str,
    region: str,
    recent: Sequence[RecentArticle],
    templates: TemplateProvider,
    topic_hint: Optional[str] = None,
    today: Optional[date] = None,
) -> GeneratorRequest:
    diversity = templates.section_before("article-generation", "## Article Structure")
    system = (
        "You are a news research agent for a Japanese language learning app.\n"
        "Your job: find ONE specific, interesting current news story with 2-3 sourced findings.\n\n"
        f"## Source Expertise\n{templates.get('news-sourcing')}\n\n"
        f"## Topic Diversity Rules\n{diversity}\n\n"
        "## Constraints\n"
        f"- The learner's interest categories: {json.dumps(config.topics)}\n"
        f"- The learner's regions: {json.dumps(config.regions)}\n"
        f'- Pick category "{category}" and region "{region}" for this article\n'
        "- If no good story exists for that combination, pick another category from the list\n"
        "- The learner's last articles (avoid similar topics):\n"
        f"{_format_recent(recent)}\n\n"
        "## Output\n"
        "Respond with ONLY JSON (no markdown):\n"
        f"{json.dumps(DISCOVERY_OUTPUT, indent=2)}"
    )
    focus = f"about {topic_hint} " if topic_hint else ""
    user = (
        f"Today: {(today or date.today()).isoformat()}.\n"
        f"Find a current {category} news story {focus}from {region} for a "
        f"{config.proficiency_level}-level Japanese learning article.\n"
        "Pick something specific: a real event, person or thing, understandable at that level."
    )
    return GeneratorRequest(
        system=system,
        user=user,
        max_tokens=DISCOVERY_MAX_TOKENS,
        max_searches=DISCOVERY_MAX_SEARCHES,
    )


async def discover_sources(
    generator: TextGenerator,
    request: GeneratorRequest,
    *,
    policy: RetryPolicy,
) -> Discovery:
    text = await ContinuationSession(
        generator, request, policy=policy, label="discovery"
    ).run()
    discovery = parse_discovery(extract_json(text))
    if not discovery.findings:
        raise NoFindings(f"no news findings for '{discovery.topic}'")
    logger.info(
        f"Discovery: '{discovery.topic}' ({discovery.region}), {len(discovery.findings)} finding(s)"
    )
    return discovery


# ---------------------------------------------------------------------------
# Stage 2: passage + vocabulary
# ---------------------------------------------------------------------------

_SCRIPT_RULES = {
    WritingSystem.ROMAJI: (
        "romaji-standards",
        "Romaji Rules",
        "You write Japanese learning articles in Hepburn romaji and extract vocabulary.",
        "Hepburn romaji only, NO hiragana/katakana/kanji in the article.",
    ),
    WritingSystem.KANA: (
        "kana-standards",
        "Kana Rules",
        "You write Japanese learning articles in hiragana and katakana (no kanji, no romaji) "
        "and extract vocabulary.",
        "Hiragana + katakana only, NO romaji, NO kanji. Add spaces between words.",
    ),
    WritingSystem.KANJI: (
        "kanji-standards",
        "Kanji + Furigana Rules",
        "You write Japanese learning articles using kanji with furigana and extract "
        "vocabulary. Every kanji gets furigana in full-width parentheses: 経済（けいざい）.",
        "Kanji + furigana in full-width parentheses. Add spaces between phrases.",
    ),
}

PASSAGE_OUTPUT = {
    "title_romaji": "title",
    "summary_romaji": "1 short sentence, max 80 chars / 12 words, NO markers",
    "body_romaji": "article with [NEW] and [REVIEW] markers",
    "translation_en": "English translation",
    "grammar_points": [
        {"pattern": "...", "level": "N3", "explanation": "...", "examples": ["..."]}
    ],
    "sources_cited": ["source 1"],
    "word_count": 200,
    "new_word_count": 12,
    "newWords": [
        {
            "word_romaji": "...",
            "word_romaji_macron": "...",
            "word_kanji": "...",
            "word_kana": "...",
            "meaning_en": "...",
            "part_of_speech": "noun/verb/adj",
            "jlpt_level": "N3",
            "category": "general",
            "context_sentence": "...",
        }
    ],
    "reviewWords": [
        {
            "word_romaji_macron": "...",
            "word_kana": "...",
            "word_kanji": "...",
            "meaning_en": "...",
            "context_sentence": "...",
        }
    ],
}


def build_passage_request(
    discovery: Discovery,
    config: LearnerConfig,
    *,
    known_words: Sequence[KnownWord],
    templates: TemplateProvider,
) -> GeneratorRequest:
    template, header, intro, script_rules = _SCRIPT_RULES[config.writing_system]
    level = config.proficiency_level
    system = (
        f"{intro}\n\n"
        f"## Article Writing Expertise\n{templates.get('article-generation')}\n\n"
        f"## {header}\n{templates.get(template)}\n\n"
        f"## Level\n"
        f"Write at JLPT {level} or easier. Every [NEW] word must be {level} or easier. "
        f"Sentences have at most {config.max_sentence_length} words. Simplify the news "
        "when it needs vocabulary above that level.\n\n"
        "## Markers\n"
        "[NEW] marks genuinely useful vocabulary the learner meets for the first time. "
        "Never mark particles, copulas, basic verbs, pronouns, numbers, names or loanwords, "
        "and never mark words from the known-words list with [NEW].\n"
        "The summary_romaji field is plain text without markers.\n"
        "The vocabulary metadata must always include word_romaji_macron, word_kana and "
        "word_kanji regardless of the writing system.\n\n"
        "Respond with ONLY JSON:\n"
        f"{json.dumps(PASSAGE_OUTPUT, indent=2, ensure_ascii=False)}"
    )
    news = "\n".join(
        f"{f.source}: {f.headline}. Facts: {'; '.join(f.key_facts)}. Numbers: {', '.join(f.numbers)}"
        for f in discovery.findings
    )
    known = ", ".join(
        f"{w.word} = {w.meaning}" for w in known_words[:KNOWN_WORDS_IN_PROMPT]
    )
    user = (
        f"Write a {config.target_word_count}-word Japanese learning article about: "
        f"{discovery.topic} ({discovery.region})\n\n"
        f"News: {news}\n"
        f"Summary: {discovery.summary}\n\n"
        f"Known words (reuse naturally): {known or 'none yet'}\n\n"
        f"Rules: {script_rules} Max {config.max_sentence_length} words per sentence. "
        f"Exactly {config.new_words_per_article} [NEW] words. Level: {level}. "
        "Include 1-2 grammar points. Also extract full vocabulary metadata for each "
        "[NEW] and [REVIEW] word."
    )
    return GeneratorRequest(
        system=system,
        user=user,
        max_tokens=PASSAGE_MAX_TOKENS,
        temperature=PASSAGE_TEMPERATURE,
    )


def _keep(words: list[VocabularyCandidate]) -> list[VocabularyCandidate]:
    return [w for w in words if not is_common_term(w.word_romaji_macron)]


def scrub_passage(passage: PassageDraft) -> PassageDraft:
    """Apply the common-term safety net to a drafted passage.

    ``new_word_count`` is recounted from the [NEW] markers left in the body.
    """
    kept_new = _keep(passage.new_words)
    dropped = len(passage.new_words) - len(kept_new)
    if dropped:
        logger.info(f"Dropped {dropped} common term(s) from new words")
    body = demote_common_markers(passage.body)
    return passage.model_copy(
        update={
            "summary": strip_markers(passage.summary),
            "body": body,
            "new_word_count": count_markers(body, "NEW"),
            "new_words": kept_new,
            "review_words": _keep(passage.review_words),
        }
    )


async def draft_passage(
    generator: TextGenerator,
    request: GeneratorRequest,
    *,
    writing_system: WritingSystem,
    policy: RetryPolicy,
    expected_new_words: Optional[int] = None,
) -> PassageDraft:
    text = await ContinuationSession(
        generator, request, policy=policy, label="passage"
    ).run()
    passage = scrub_passage(parse_passage(extract_json(text), writing_system))
    if not strip_markers(passage.body):
        raise EmptyGeneration("passage body is empty")
    if expected_new_words is not None and passage.new_word_count != expected_new_words:
        logger.warning(
            f"Passage marks {passage.new_word_count} [NEW] word(s), "
            f"{expected_new_words} requested"
        )
    logger.info(
        f"Passage ({writing_system.value}): '{passage.title}', "
        f"{len(passage.new_words)} new / {len(passage.review_words)} review word(s)"
    )
    return passage


# ---------------------------------------------------------------------------
# Stage 3: quiz
# ---------------------------------------------------------------------------

_QUIZ_SCRIPT_RULES = {
    WritingSystem.ROMAJI: "- Write all questions in romaji",
    WritingSystem.KANA: (
        "- Write all questions in hiragana/katakana (no romaji, no kanji)\n"
        "- Answers should be in hiragana/katakana"
    ),
    WritingSystem.KANJI: (
        "- Write questions in kanji with furigana: 漢字（かんじ）\n"
        "- Answers can be in kana or kanji with furigana"
    ),
}

QUIZ_SYSTEM_PROMPT = (
    "Generate quiz questions for a Japanese learning article. Respond with ONLY JSON:\n"
    '{"questions":[{"type":"meaning/context/comprehension","question_romaji":"...",'
    '"question_en":"...","correct_answer":"...","distractors":["...","...","..."],'
    '"hint":"...","vocabulary_word":"..."}]}\n\n'
    "Rules:\n"
    "- Never test acronyms; only real Japanese vocabulary\n"
    "- Never ask about specific numbers, percentages or dates from the article\n"
    "- Test word meanings and comprehension of the article\n"
    "- Answer options are complete, full-length answers\n"
    "- Distractors are plausible words or phrases at the same level\n"
    "- vocabulary_word is the word_romaji_macron of the tested word, when there is one\n"
)


def build_quiz_request(passage: PassageDraft, config: LearnerConfig) -> GeneratorRequest:
    new_words = ", ".join(
        f"{w.word_romaji_macron} = {w.meaning_en}" for w in passage.new_words
    )
    user = (
        f'{config.quiz_questions_count} questions for: "{passage.title}"\n'
        f"Article: {passage.body}\n"
        f"New words: {new_words or 'none'}\n"
        f"Level: {config.proficiency_level}. 3 full-length distractors each. "
        "No acronyms or number recall."
    )
    return GeneratorRequest(
        system=QUIZ_SYSTEM_PROMPT + _QUIZ_SCRIPT_RULES[passage.writing_system],
        user=user,
        max_tokens=QUIZ_MAX_TOKENS,
    )


async def generate_quiz(
    generator: TextGenerator,
    request: GeneratorRequest,
    *,
    limit: int,
    policy: RetryPolicy,
) -> QuizSet:
    text = await ContinuationSession(
        generator, request, policy=policy, label="quiz"
    ).run()
    quiz = parse_quiz(extract_json(text))
    if not quiz.questions:
        raise EmptyGeneration("quiz has no usable questions")
    logger.info(f"Quiz: {len(quiz.questions)} question(s)")
    return QuizSet(questions=quiz.questions[:limit])
