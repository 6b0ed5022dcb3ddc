import pytest

from questionforge.config import WorkerConfig
from questionforge.database.catalog import CatalogService
from questionforge.database.jobs import JobQueueService
from questionforge.database.notifications import NotificationService
from questionforge.database.questions import QuestionService
from questionforge.generation.generator import QuestionGenerator
from questionforge.jobs.notifier import JobNotifier
from questionforge.jobs.processor import JobProcessor
from questionforge.jobs.runner import JobRunner
from questionforge.utils.logging import get_log_buffer

from .fakes import FakeOpenAI, FakeSupabase


def make_config(**overrides) -> WorkerConfig:
    settings = {
        "SUPABASE_URL": "https://project.supabase.co",
        "SUPABASE_SERVICE_KEY": "service-key",
        "OPENAI_API_KEY": "sk-test",
        # Effectively unlimited so tests never wait on the limiter
        "GENERATION_RATE_PER_MINUTE": 600000,
        "GENERATION_BURST": 100,
    }
    settings.update(overrides)
    return WorkerConfig(_env_file=None, **settings)


def build_runner(db: FakeSupabase, openai_client: FakeOpenAI, worker_config: WorkerConfig) -> JobRunner:
    jobs = JobQueueService(client=db)
    processor = JobProcessor(
        worker_config,
        job_service=jobs,
        question_service=QuestionService(client=db),
        catalog=CatalogService(client=db),
        generator=QuestionGenerator(worker_config, client=openai_client),
        notifier=JobNotifier(NotificationService(client=db)),
    )
    return JobRunner(worker_config, job_service=jobs, processor=processor)


@pytest.fixture(autouse=True)
def clear_log_buffer():
    get_log_buffer().clear()
    yield
    get_log_buffer().clear()


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def openai_client():
    return FakeOpenAI()


@pytest.fixture
def worker_config():
    return make_config()


@pytest.fixture
def runner(db, openai_client, worker_config):
    return build_runner(db, openai_client, worker_config)


@pytest.fixture
def processor(runner):
    return runner.processor
