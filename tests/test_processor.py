import asyncio

import pytest

from questionforge.jobs.models import compute_progress

from .conftest import build_runner, make_config
from .fakes import FakeOpenAI, question_reply

BAD_REPLY = "this is not json"


def notifications(db):
    return db.rows("user_notifications")


def assert_progress_consistent(db, job_id):
    """Every persisted job state has matching counters that never go down."""
    previous = -1
    for row in db.job_updates(job_id):
        assert row["questions_generated"] == len(row["question_ids"])
        assert row["progress_percentage"] == compute_progress(
            row["questions_generated"], row["config"].get("quantity") or 10
        )
        assert row["questions_generated"] >= previous
        previous = row["questions_generated"]


class TestCompletedJobs:
    @pytest.mark.asyncio
    async def test_full_batch(self, db, openai_client, processor):
        job = db.add_job({"context_id": "ctx-1", "quantity": 10})

        outcome = await processor.process(job)

        assert outcome.status == "completed"
        assert outcome.generated == 10
        assert len(openai_client.calls) == 1

        row = db.job(job["id"])
        assert row["status"] == "completed"
        assert row["questions_generated"] == 10
        assert row["progress_percentage"] == 100
        assert row["completed_at"] is not None
        assert row["question_ids"] == [q["id"] for q in db.rows("questions")]
        assert_progress_consistent(db, job["id"])

        [notification] = notifications(db)
        assert notification["type"] == "question_generation"
        assert notification["user_email"] == "student@example.com"
        assert notification["message"] == "10 of 10 questions were generated successfully!"
        assert notification["link"] == "/questions/solve?context=ctx-1"
        assert notification["metadata"]["status"] == "completed"
        assert notification["metadata"]["question_ids"] == row["question_ids"]

    @pytest.mark.asyncio
    async def test_partial_success_with_failed_calls(self, db):
        ok = question_reply(1)
        openai_client = FakeOpenAI([ok, BAD_REPLY, ok, ok, BAD_REPLY, ok, ok, BAD_REPLY, ok, ok])
        runner = build_runner(db, openai_client, make_config(WORKER_BATCH_SIZE=1))
        job = db.add_job({"context_id": "ctx-1", "quantity": 10})

        outcome = await runner.processor.process(job)

        assert outcome.status == "completed"
        assert len(openai_client.calls) == 10
        row = db.job(job["id"])
        assert row["status"] == "completed"
        assert row["questions_generated"] == 7
        assert row["progress_percentage"] == 70
        assert len(db.rows("questions")) == 7
        assert_progress_consistent(db, job["id"])

        [notification] = notifications(db)
        assert notification["message"] == "7 of 10 questions were generated successfully!"

    @pytest.mark.asyncio
    async def test_chunks_cover_remainder(self, db):
        openai_client = FakeOpenAI()
        runner = build_runner(db, openai_client, make_config(WORKER_BATCH_SIZE=10))
        job = db.add_job({"context_id": "ctx-1", "quantity": 23})

        await runner.processor.process(job)

        assert [FakeOpenAI.requested_count(call) for call in openai_client.calls] == [10, 10, 3]
        assert db.job(job["id"])["questions_generated"] == 23

    @pytest.mark.asyncio
    async def test_every_call_fails_still_completes(self, db, processor, openai_client):
        openai_client.default = BAD_REPLY
        job = db.add_job({"context_id": "ctx-1", "quantity": 10})

        outcome = await processor.process(job)

        assert outcome.status == "completed"
        row = db.job(job["id"])
        assert row["questions_generated"] == 0
        assert row["progress_percentage"] == 0
        assert notifications(db)[0]["message"] == "0 of 10 questions were generated successfully!"

    @pytest.mark.asyncio
    async def test_failed_inserts_are_skipped(self, db, processor):
        db.fail("questions", "insert", times=2)
        job = db.add_job({"context_id": "ctx-1", "quantity": 10})

        await processor.process(job)

        row = db.job(job["id"])
        assert row["questions_generated"] == 8
        assert row["progress_percentage"] == 80
        assert_progress_consistent(db, job["id"])

    @pytest.mark.asyncio
    async def test_lost_notification_keeps_job_completed(self, db, processor):
        db.fail("user_notifications", "insert")
        job = db.add_job()

        outcome = await processor.process(job)

        assert outcome.status == "completed"
        assert db.job(job["id"])["status"] == "completed"
        assert notifications(db) == []


class TestQuestionRows:
    @pytest.mark.asyncio
    async def test_stored_fields(self, db, processor):
        db.store("context_subjects", {"id": "s1", "name": "Civil Law"})
        db.store("context_topics", {"id": "t1", "name": "Contracts"})
        job = db.add_job({
            "context_id": "ctx-1",
            "quantity": 1,
            "subject_ids": ["s1"],
            "topic_ids": ["t1"],
            "exam_board": "FGV",
            "exam_year": 2024,
            "difficulty": "easy",
        })

        await processor.process(job)

        [question] = db.rows("questions")
        assert question["context_id"] == "ctx-1"
        assert question["subject_id"] == "s1"
        assert question["topic_id"] == "t1"
        assert question["statement"] == "Question 1?"
        assert question["question_type"] == "multiple_choice"
        assert question["correct_label"] == "B"
        assert [o["correct"] for o in question["options"]] == [False, True, False, False, False]
        assert question["difficulty"] == 1
        assert question["exam_board"] == "FGV"
        assert question["exam_year"] == "2024"
        assert question["origin"] == "ai_generated"
        assert question["source"] == f"gpt-4o:job:{job['id']}"
        assert question["is_public"] is False
        assert question["tags"] == ["Civil Law", "Contracts", "FGV"]
        assert "source_document_id" not in question

    @pytest.mark.asyncio
    async def test_topics_rotate_per_chunk(self, db):
        runner = build_runner(db, FakeOpenAI(), make_config(WORKER_BATCH_SIZE=2))
        job = db.add_job({"context_id": "ctx-1", "quantity": 6, "topic_ids": ["t1", "t2"]})

        await runner.processor.process(job)

        assert [q["topic_id"] for q in db.rows("questions")] == ["t1", "t1", "t2", "t2", "t1", "t1"]

    @pytest.mark.asyncio
    async def test_difficulty_falls_back_to_model_estimate(self, db, processor, openai_client):
        openai_client.responses = [question_reply(2, difficulty=5)]
        job = db.add_job({"context_id": "ctx-1", "quantity": 2, "difficulty": "mixed"})

        await processor.process(job)

        assert [q["difficulty"] for q in db.rows("questions")] == [5, 5]

    @pytest.mark.asyncio
    async def test_difficulty_default(self, db, processor, openai_client):
        openai_client.responses = [question_reply(1, difficulty=None)]
        job = db.add_job({"context_id": "ctx-1", "quantity": 1, "difficulty": "mixed"})

        await processor.process(job)

        assert db.rows("questions")[0]["difficulty"] == 2

    @pytest.mark.asyncio
    async def test_catalog_failure_uses_general(self, db, processor, openai_client):
        db.fail("context_subjects", "select")
        job = db.add_job({"context_id": "ctx-1", "quantity": 1, "subject_ids": ["s1"]})

        outcome = await processor.process(job)

        assert outcome.status == "completed"
        assert "- Subject: General" in openai_client.calls[0]["messages"][1]["content"]
        assert db.rows("questions")[0]["tags"] == ["General", "General"]


class TestFailedJobs:
    @pytest.mark.asyncio
    async def test_missing_context_id(self, db, processor, openai_client):
        job = db.add_job({"quantity": 5})

        outcome = await processor.process(job)

        assert outcome.status == "failed"
        assert openai_client.calls == []
        assert db.rows("questions") == []

        row = db.job(job["id"])
        assert row["status"] == "failed"
        assert row["error_message"] == "context_id not found in job config"

        [notification] = notifications(db)
        assert notification["title"] == "Question generation failed"
        assert notification["message"] == "An error occurred: context_id not found in job config"
        assert notification["metadata"]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_invalid_config(self, db, processor):
        job = db.add_job({"context_id": "ctx-1", "quantity": -4})

        await processor.process(job)

        row = db.job(job["id"])
        assert row["status"] == "failed"
        assert row["error_message"] == "Invalid job config: quantity"

    @pytest.mark.asyncio
    async def test_failure_ratio_threshold(self, db, openai_client):
        openai_client.default = BAD_REPLY
        runner = build_runner(db, openai_client, make_config(WORKER_MAX_FAILURE_RATIO=0.5))
        job = db.add_job({"context_id": "ctx-1", "quantity": 10})

        outcome = await runner.processor.process(job)

        assert outcome.status == "failed"
        assert db.job(job["id"])["error_message"] == "Only 0 of 10 questions could be generated"
        assert len(notifications(db)) == 1

    @pytest.mark.asyncio
    async def test_completion_write_failure_marks_failed(self, db, processor):
        db.fail(
            "question_generation_jobs",
            "update",
            when=lambda payload: payload.get("status") == "completed",
        )
        job = db.add_job()

        outcome = await processor.process(job)

        assert outcome.status == "failed"
        assert db.job(job["id"])["status"] == "failed"
        [notification] = notifications(db)
        assert notification["metadata"]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_claim_write_failure_leaves_job_pending(self, db, processor, openai_client):
        db.fail("question_generation_jobs", "update")
        job = db.add_job()

        outcome = await processor.process(job)

        assert outcome.status == "skipped"
        assert db.job(job["id"])["status"] == "pending"
        assert openai_client.calls == []
        assert notifications(db) == []


class TestDocumentJobs:
    @pytest.mark.asyncio
    async def test_generates_from_document(self, db, processor, openai_client):
        db.store("source_documents", {"id": "d1", "file_name": "notes.pdf", "extracted_text": "Article 5 says..."})
        job = db.add_job({"context_id": "ctx-1", "quantity": 3, "source_document_id": "d1"})

        outcome = await processor.process(job)

        assert outcome.status == "completed"
        assert 'DOCUMENT "notes.pdf":\nArticle 5 says...' in openai_client.calls[0]["messages"][1]["content"]

        questions = db.rows("questions")
        assert len(questions) == 3
        assert {q["origin"] for q in questions} == {"ai_document"}
        assert {q["source"] for q in questions} == {"document: notes.pdf"}
        assert {q["source_document_id"] for q in questions} == {"d1"}

        [notification] = notifications(db)
        assert notification["title"] == "Questions from your document are ready!"
        assert notification["message"] == '3 of 3 questions were generated from "notes.pdf"!'
        assert notification["metadata"]["document_name"] == "notes.pdf"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", [None, {"id": "d1", "file_name": "empty.pdf", "extracted_text": "  "}])
    async def test_missing_or_empty_document_fails(self, db, processor, openai_client, document):
        if document:
            db.store("source_documents", document)
        job = db.add_job({"context_id": "ctx-1", "source_document_id": "d1"})

        outcome = await processor.process(job)

        assert outcome.status == "failed"
        assert openai_client.calls == []
        row = db.job(job["id"])
        assert row["status"] == "failed"
        assert "d1" in row["error_message"]
        assert len(notifications(db)) == 1

    @pytest.mark.asyncio
    async def test_document_lookup_error_fails(self, db, processor):
        db.fail("source_documents", "select")
        job = db.add_job({"context_id": "ctx-1", "source_document_id": "d1"})

        outcome = await processor.process(job)

        assert outcome.status == "failed"
        assert db.job(job["id"])["error_message"].startswith("Could not load source document d1")


class TestOverlappingPasses:
    @pytest.mark.asyncio
    async def test_exclusive_claim_processes_once(self, db):
        openai_client = FakeOpenAI(yield_control=True)
        first = build_runner(db, openai_client, make_config())
        second = build_runner(db, openai_client, make_config())
        job = db.add_job({"context_id": "ctx-1", "quantity": 10})

        outcomes = await asyncio.gather(first.processor.process(job), second.processor.process(job))

        assert sorted(o.status for o in outcomes) == ["completed", "skipped"]
        assert len(openai_client.calls) == 1
        assert len(db.rows("questions")) == 10
        assert len(notifications(db)) == 1

    @pytest.mark.asyncio
    async def test_non_exclusive_claim_notifies_once(self, db):
        openai_client = FakeOpenAI(yield_control=True)
        worker_config = make_config(WORKER_EXCLUSIVE_CLAIMS=False)
        first = build_runner(db, openai_client, worker_config)
        second = build_runner(db, openai_client, worker_config)
        job = db.add_job({"context_id": "ctx-1", "quantity": 10})

        outcomes = await asyncio.gather(first.processor.process(job), second.processor.process(job))

        assert sorted(o.status for o in outcomes) == ["completed", "superseded"]
        assert len(openai_client.calls) == 2
        row = db.job(job["id"])
        assert row["status"] == "completed"
        assert row["questions_generated"] == 10
        assert len(notifications(db)) == 1
        assert_progress_consistent(db, job["id"])
