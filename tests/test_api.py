import json
from datetime import datetime, timedelta

import pytest

from app.core.db.schemas import VocabularyItem
from app.modules.vocabulary.lifecycle import utcnow

from tests.fakes import discovery_payload, scripted_run

pytestmark = pytest.mark.api


async def _generate(client, generator, headers) -> dict:
    generator.replies = scripted_run().replies
    response = await client.post("/v1/articles/generate", headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _word(article: dict, key: str) -> dict:
    return next(w for w in article["vocabulary"] if w["word_romaji_macron"] == key)


class TestHealthAndIdentity:
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_missing_learner_header_is_rejected(self, client):
        response = await client.get("/v1/articles")
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing X-User-ID header"

    async def test_blank_learner_header_is_rejected(self, client):
        response = await client.get("/v1/vocabulary", headers={"X-User-ID": "  "})
        assert response.status_code == 400


class TestArticles:
    async def test_generate_then_read_back(self, client, generator, learner_headers):
        article = await _generate(client, generator, learner_headers)
        assert article["id"] == 1
        assert article["elapsed_seconds"] >= 0
        assert {w["word_romaji_macron"] for w in article["vocabulary"]} == {
            "keizai",
            "seifu",
            "kaigi",
        }
        assert len(article["quiz"]) == 2

        fetched = await client.get("/v1/articles/1", headers=learner_headers)
        assert fetched.status_code == 200
        assert fetched.json()["title"] == article["title"]

        listing = (await client.get("/v1/articles", headers=learner_headers)).json()
        assert listing["total"] == 1
        assert listing["items"][0]["id"] == 1

    async def test_articles_are_scoped_to_the_learner(self, client, generator, learner_headers):
        await _generate(client, generator, learner_headers)
        other = {"X-User-ID": "learner-2"}
        assert (await client.get("/v1/articles/1", headers=other)).status_code == 404
        assert (await client.get("/v1/articles", headers=other)).json()["total"] == 0

    async def test_generation_failure_reports_stage(self, client, generator, learner_headers):
        generator.replies = [json.dumps(discovery_payload(articles=[]))]
        response = await client.post("/v1/articles/generate", headers=learner_headers)
        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["stage"] == "selecting_topic"
        assert detail["error"] == "NoFindings"

    async def test_mark_read_and_unread(self, client, generator, learner_headers):
        await _generate(client, generator, learner_headers)
        response = await client.patch(
            "/v1/articles/1", json={"read": True}, headers=learner_headers
        )
        assert response.status_code == 200
        assert response.json()["read_at"] is not None

        response = await client.patch(
            "/v1/articles/1", json={"read": False}, headers=learner_headers
        )
        assert response.json()["read_at"] is None

    async def test_delete_with_vocabulary(self, client, generator, learner_headers):
        await _generate(client, generator, learner_headers)
        response = await client.delete(
            "/v1/articles/1", params={"delete_vocabulary": True}, headers=learner_headers
        )
        assert response.status_code == 200
        assert (await client.get("/v1/articles/1", headers=learner_headers)).status_code == 404
        words = (await client.get("/v1/vocabulary", headers=learner_headers)).json()
        assert words["total"] == 0

    async def test_delete_keeps_vocabulary_by_default(self, client, generator, learner_headers):
        await _generate(client, generator, learner_headers)
        await client.delete("/v1/articles/1", headers=learner_headers)
        words = (await client.get("/v1/vocabulary", headers=learner_headers)).json()
        assert words["total"] == 3

    async def test_unknown_article(self, client, learner_headers):
        assert (await client.get("/v1/articles/99", headers=learner_headers)).status_code == 404


class TestQuiz:
    async def test_third_correct_answer_promotes_word_to_known(
        self, client, generator, learner_headers, session_maker
    ):
        article = await _generate(client, generator, learner_headers)
        keizai = _word(article, "keizai")
        question = next(q for q in article["quiz"] if q["vocabulary_id"] == keizai["id"])

        async with session_maker() as session:
            item = await session.get(VocabularyItem, keizai["id"])
            item.times_seen = 5
            item.times_tested = 2
            item.times_tested_correct = 2
            item.times_used_correctly = 2
            await session.commit()

        before = utcnow()
        response = await client.post(
            "/v1/articles/1/quiz",
            json={"answers": [{"question_id": question["id"], "answer": "  Economy "}]},
            headers=learner_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["results"][0]["correct"] is True
        assert body["score"] == {"correct": 1, "total": 1, "percentage": 100}

        word = (await client.get(f"/v1/vocabulary/{keizai['id']}", headers=learner_headers)).json()
        assert word["status"] == "known"
        assert word["times_tested_correct"] == 3
        due = datetime.fromisoformat(word["next_review_at"])
        assert timedelta(days=1) <= due - before < timedelta(days=1, minutes=1)
        assert word["appearances"][0]["article_id"] == 1

        quiz = (await client.get("/v1/articles/1/quiz", headers=learner_headers)).json()
        assert quiz["answered"] == 1
        assert quiz["correct"] == 1

    async def test_wrong_answer_is_graded(self, client, generator, learner_headers):
        article = await _generate(client, generator, learner_headers)
        question = article["quiz"][0]
        response = await client.post(
            "/v1/articles/1/quiz",
            json={"answers": [{"question_id": question["id"], "answer": "weather"}]},
            headers=learner_headers,
        )
        body = response.json()
        assert body["results"][0]["correct"] is False
        assert body["results"][0]["correct_answer"] == "economy"
        assert body["score"]["percentage"] == 0

    async def test_repeated_question_is_graded_once(self, client, generator, learner_headers):
        article = await _generate(client, generator, learner_headers)
        keizai = _word(article, "keizai")
        question = next(q for q in article["quiz"] if q["vocabulary_id"] == keizai["id"])

        response = await client.post(
            "/v1/articles/1/quiz",
            json={
                "answers": [
                    {"question_id": question["id"], "answer": "economy"},
                    {"question_id": question["id"], "answer": "weather"},
                ]
            },
            headers=learner_headers,
        )
        body = response.json()
        assert [r["correct"] for r in body["results"]] == [True]
        assert body["score"] == {"correct": 1, "total": 1, "percentage": 100}

        word = (await client.get(f"/v1/vocabulary/{keizai['id']}", headers=learner_headers)).json()
        assert word["times_tested"] == 1
        assert word["times_tested_correct"] == 1

    async def test_quiz_for_unknown_article(self, client, learner_headers):
        response = await client.post(
            "/v1/articles/5/quiz",
            json={"answers": [{"question_id": 1, "answer": "x"}]},
            headers=learner_headers,
        )
        assert response.status_code == 404


class TestVocabulary:
    async def test_direct_test_updates_counters(self, client, generator, learner_headers):
        article = await _generate(client, generator, learner_headers)
        seifu = _word(article, "seifu")
        response = await client.post(
            f"/v1/vocabulary/{seifu['id']}/test",
            json={"correct": False},
            headers=learner_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status_changed"] is False
        assert body["word"]["times_tested"] == 1
        assert body["word"]["times_tested_correct"] == 0

    async def test_status_override(self, client, generator, learner_headers):
        article = await _generate(client, generator, learner_headers)
        kaigi = _word(article, "kaigi")

        response = await client.patch(
            f"/v1/vocabulary/{kaigi['id']}", json={"status": "known"}, headers=learner_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "known"
        assert response.json()["next_review_at"] is not None

        response = await client.patch(
            f"/v1/vocabulary/{kaigi['id']}", json={"status": "forgotten"}, headers=learner_headers
        )
        assert response.status_code == 400

    async def test_list_filters_and_search(self, client, generator, learner_headers):
        await _generate(client, generator, learner_headers)
        found = (
            await client.get(
                "/v1/vocabulary", params={"search": "govern"}, headers=learner_headers
            )
        ).json()
        assert [w["word_romaji_macron"] for w in found["items"]] == ["seifu"]

        ordered = (
            await client.get(
                "/v1/vocabulary", params={"sort": "alphabetical"}, headers=learner_headers
            )
        ).json()
        assert [w["word_romaji_macron"] for w in ordered["items"]] == ["kaigi", "keizai", "seifu"]

        known = (
            await client.get("/v1/vocabulary", params={"status": "known"}, headers=learner_headers)
        ).json()
        assert known["total"] == 0

    async def test_nothing_due_for_fresh_words(self, client, generator, learner_headers):
        await _generate(client, generator, learner_headers)
        response = await client.get("/v1/vocabulary/due", headers=learner_headers)
        assert response.status_code == 200
        assert response.json() == []


class TestConfigAndStats:
    async def test_defaults_then_partial_update(self, client, learner_headers):
        config = (await client.get("/v1/config", headers=learner_headers)).json()
        assert config["proficiency_level"] == "N3"
        assert config["writing_system"] == "romaji"

        response = await client.put(
            "/v1/config",
            json={"proficiency_level": "N4", "writing_system": "kana"},
            headers=learner_headers,
        )
        assert response.status_code == 200

        config = (await client.get("/v1/config", headers=learner_headers)).json()
        assert config["proficiency_level"] == "N4"
        assert config["writing_system"] == "kana"
        assert config["quiz_questions_count"] == 7

    async def test_unknown_key_is_rejected(self, client, learner_headers):
        response = await client.put("/v1/config", json={"bogus": 1}, headers=learner_headers)
        assert response.status_code == 400
        assert "bogus" in response.json()["detail"]

    async def test_invalid_value_is_rejected(self, client, learner_headers):
        response = await client.put(
            "/v1/config", json={"quiz_questions_count": 0}, headers=learner_headers
        )
        assert response.status_code == 400

    async def test_stats_overview(self, client, generator, learner_headers):
        await _generate(client, generator, learner_headers)
        await client.patch("/v1/articles/1", json={"read": True}, headers=learner_headers)

        stats = (await client.get("/v1/stats", headers=learner_headers)).json()
        assert stats["vocabulary"]["total"] == 3
        assert stats["vocabulary"]["by_status"]["learning"] == 3
        assert stats["vocabulary"]["by_level"]["N3"] == 2
        assert stats["articles"] == {
            "total": 1,
            "read": 1,
            "quizzed": 0,
            "average_quiz_score": None,
        }
        assert stats["read_streak_days"] == 1
