"""
Question Generator

Turns one chunk of a job into a single chat-completions call and parses the
structured reply into validated question records.
"""

import json
from typing import List, Optional

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from questionforge.config import WorkerConfig, config as default_config
from questionforge.errors import GenerationError
from questionforge.jobs.models import ChunkContext, JobConfig
from questionforge.utils.logging import generation_logger as logger
from .prompts import build_messages
from .rate_limit import TokenBucket
from .schemas import GeneratedQuestion


def _strip_code_fences(text: str) -> str:
    """Unwrap a reply that is entirely a fenced block; fences inside the JSON are left alone."""
    text = text.strip()
    if not text.startswith("```"):
        return text

    body = text[3:]
    if body.startswith("json"):
        body = body[4:]
    body = body.rstrip()
    if body.endswith("```"):
        body = body[:-3]
    return body.strip()


def parse_questions(content: Optional[str], limit: Optional[int] = None) -> List[GeneratedQuestion]:
    """
    Parse a structured reply into question records.

    Records that fail validation are dropped individually. Records beyond
    `limit` are discarded.

    Raises:
        GenerationError: empty content, non-JSON content, no question list,
                         or no record that validates
    """
    if not content or not content.strip():
        raise GenerationError("Generation service returned an empty reply")

    text = _strip_code_fences(content)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Reply is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationError("Reply is not a JSON object")

    records = data.get("questions")
    if records is None and ("statement" in data or "question" in data):
        records = [data]

    if not isinstance(records, list) or not records:
        raise GenerationError("No questions found in the reply")

    questions: List[GeneratedQuestion] = []
    for index, record in enumerate(records):
        try:
            questions.append(GeneratedQuestion.model_validate(record))
        except ValidationError as e:
            logger.warning(
                "Dropping invalid question record",
                index=index,
                errors=e.error_count()
            )

    if not questions:
        raise GenerationError(f"None of the {len(records)} question records in the reply were valid")

    if limit is not None:
        questions = questions[:limit]
    return questions


class QuestionGenerator:
    """
    Generates batches of exam questions with the OpenAI chat completions API.

    Every call first takes a token from the rate limiter; share one limiter
    across generators to bound the process-wide call rate.
    """

    def __init__(
        self,
        worker_config: Optional[WorkerConfig] = None,
        client: Optional[AsyncOpenAI] = None,
        rate_limiter: Optional[TokenBucket] = None
    ):
        self.config = worker_config or default_config
        self._client = client
        self.rate_limiter = rate_limiter or TokenBucket(
            self.config.GENERATION_RATE_PER_MINUTE,
            capacity=self.config.GENERATION_BURST,
        )

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.OPENAI_API_KEY,
                base_url=self.config.OPENAI_BASE_URL,
                timeout=self.config.GENERATION_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    def max_tokens_for(self, count: int) -> int:
        return min(
            self.config.GENERATION_MAX_TOKENS_PER_QUESTION * count,
            self.config.GENERATION_MAX_TOKENS_CAP
        )

    async def generate_batch(
        self,
        count: int,
        job_config: JobConfig,
        context: ChunkContext
    ) -> List[GeneratedQuestion]:
        """
        Request `count` questions in one call.

        Returns:
            Between 1 and `count` validated questions

        Raises:
            GenerationError: if the call fails or the reply is unusable
        """
        if count < 1:
            return []

        waited = await self.rate_limiter.acquire()
        if waited:
            logger.debug("Rate limiter delayed generation call", waited_seconds=round(waited, 2))

        messages = build_messages(
            count,
            job_config,
            context,
            excerpt_chars=self.config.DOCUMENT_EXCERPT_CHARS
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.config.GENERATION_MODEL,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=self.config.GENERATION_TEMPERATURE,
                max_tokens=self.max_tokens_for(count),
            )
        except openai.APIStatusError as e:
            raise GenerationError(
                f"Generation service error: {e.status_code}",
                status_code=e.status_code
            ) from e
        except openai.APITimeoutError as e:
            raise GenerationError("Generation service timed out") from e
        except openai.APIError as e:
            raise GenerationError(f"Generation service request failed: {e}") from e

        if not response.choices:
            raise GenerationError("Generation service returned no choices")

        content = response.choices[0].message.content
        return parse_questions(content, limit=count)


# Process-wide generator: one rate limiter and one HTTP client for every pass
_shared_generator: Optional[QuestionGenerator] = None


def get_question_generator(worker_config: Optional[WorkerConfig] = None) -> QuestionGenerator:
    """Shared generator built on first use; later calls return the same instance."""
    global _shared_generator

    if _shared_generator is None:
        _shared_generator = QuestionGenerator(worker_config)
    return _shared_generator
