import copy

import pytest

from questionforge.api.routes import get_runner
from questionforge.generation import generator as generator_module
from questionforge.jobs.scheduler import QuestionWorker

from .conftest import build_runner, make_config
from .fakes import FakeOpenAI


@pytest.mark.asyncio
async def test_pass_processes_both_partitions(db, runner):
    db.store("source_documents", {"id": "d1", "file_name": "notes.pdf", "extracted_text": "text"})
    plain = db.add_job({"context_id": "ctx-1", "quantity": 2})
    document = db.add_job({"context_id": "ctx-1", "quantity": 2, "source_document_id": "d1"})

    summary = await runner.run_pass()

    assert summary.success
    assert summary.processed == 2
    assert summary.skipped == 0
    assert summary.partitions == {"plain": 1, "document": 1}
    assert db.job(plain["id"])["status"] == "completed"
    assert db.job(document["id"])["status"] == "completed"


@pytest.mark.asyncio
async def test_poll_limit_per_partition(db, runner):
    for _ in range(5):
        db.add_job({"context_id": "ctx-1", "quantity": 1})

    summary = await runner.run_pass()

    assert summary.processed == 3
    statuses = [row["status"] for row in db.rows("question_generation_jobs")]
    assert statuses == ["completed"] * 3 + ["pending"] * 2


@pytest.mark.asyncio
async def test_second_pass_is_a_no_op(db, runner, openai_client):
    db.add_job({"context_id": "ctx-1", "quantity": 3})
    db.add_job({"quantity": 3})
    await runner.run_pass()

    tables = copy.deepcopy(db.tables)
    calls = len(openai_client.calls)

    summary = await runner.run_pass()

    assert summary.success
    assert summary.processed == 0
    assert db.tables == tables
    assert len(openai_client.calls) == calls


@pytest.mark.asyncio
async def test_failed_job_does_not_stop_the_pass(db, runner):
    broken = db.add_job({"quantity": 3})
    healthy = db.add_job({"context_id": "ctx-1", "quantity": 3})

    summary = await runner.run_pass()

    assert summary.success
    assert summary.processed == 2
    assert db.job(broken["id"])["status"] == "failed"
    assert db.job(healthy["id"])["status"] == "completed"


@pytest.mark.asyncio
async def test_missing_config_aborts_before_touching_jobs(db, openai_client):
    runner = build_runner(db, openai_client, make_config(OPENAI_API_KEY=None))
    job = db.add_job()

    summary = await runner.run_pass()

    assert not summary.success
    assert "OPENAI_API_KEY" in summary.error
    assert db.job(job["id"])["status"] == "pending"
    assert db.history == []


@pytest.mark.asyncio
async def test_poll_failure_aborts_pass(db, runner):
    job = db.add_job()
    db.fail("question_generation_jobs", "select", when=None, times=1)

    summary = await runner.run_pass()

    assert not summary.success
    assert "Failed to fetch pending jobs" in summary.error
    assert db.job(job["id"])["status"] == "pending"


@pytest.mark.asyncio
async def test_concurrent_jobs(db):
    openai_client = FakeOpenAI(yield_control=True)
    runner = build_runner(db, openai_client, make_config(WORKER_MAX_CONCURRENT_JOBS=3))
    jobs = [db.add_job({"context_id": "ctx-1", "quantity": 4}) for _ in range(3)]

    summary = await runner.run_pass()

    assert summary.processed == 3
    for job in jobs:
        row = db.job(job["id"])
        assert row["status"] == "completed"
        assert row["questions_generated"] == 4
    assert len(db.rows("user_notifications")) == 3


@pytest.mark.asyncio
async def test_worker_tick_records_summary(db, runner):
    db.add_job({"context_id": "ctx-1", "quantity": 1})
    worker = QuestionWorker(runner.config, runner=runner)

    summary = await worker.tick()

    assert summary.processed == 1
    assert worker.last_summary is summary
    assert not worker.is_processing


@pytest.mark.asyncio
async def test_blank_document_id_polled_and_processed_as_document(db, runner, openai_client):
    job = db.add_job({"context_id": "ctx-1", "quantity": 1, "source_document_id": ""})

    summary = await runner.run_pass()

    assert summary.partitions == {"plain": 0, "document": 1}
    assert openai_client.calls == []
    assert db.rows("questions") == []
    row = db.job(job["id"])
    assert row["status"] == "failed"
    assert row["error_message"] == "Source document id is blank in job config"
    assert len(db.rows("user_notifications")) == 1


def test_runners_share_one_rate_limiter(monkeypatch):
    monkeypatch.setattr(generator_module, "_shared_generator", None)

    on_demand = get_runner().processor.generator
    another_request = get_runner().processor.generator
    scheduled = QuestionWorker(make_config()).runner.processor.generator

    assert on_demand is another_request is scheduled
    assert on_demand.rate_limiter is scheduled.rate_limiter
