"""Question generation: prompts, reply schema, rate limiting and the OpenAI client wrapper."""

from .generator import QuestionGenerator, get_question_generator, parse_questions
from .rate_limit import TokenBucket
from .schemas import GeneratedOption, GeneratedQuestion

__all__ = [
    "QuestionGenerator",
    "get_question_generator",
    "parse_questions",
    "TokenBucket",
    "GeneratedOption",
    "GeneratedQuestion",
]
