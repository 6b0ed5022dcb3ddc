"""
Question Generation Prompts

System and user prompts for exam question generation, for plain jobs
(subject/topic driven) and document-backed jobs (grounded in an uploaded
document's extracted text).
"""

from typing import Dict, List, Optional

from questionforge.jobs.models import ChunkContext, JobConfig


# =============================================================================
# System Prompts
# =============================================================================

SYSTEM_PROMPT = (
    "You are an expert at writing public exam questions. "
    "Always return valid JSON and nothing else."
)

DOCUMENT_SYSTEM_PROMPT = (
    "You are an expert at writing public exam questions from study material. "
    "Only ask about facts stated in the material you are given. "
    "Always return valid JSON and nothing else."
)


# =============================================================================
# Reply Format
# =============================================================================

MULTIPLE_CHOICE_EXAMPLE = """{
  "questions": [{
    "statement": "Question text",
    "options": [
      {"label": "A", "text": "...", "correct": false},
      {"label": "B", "text": "...", "correct": true},
      {"label": "C", "text": "...", "correct": false},
      {"label": "D", "text": "...", "correct": false},
      {"label": "E", "text": "...", "correct": false}
    ],
    "explanation": "Detailed explanation of the correct answer",
    "difficulty": 3
  }]
}"""

TRUE_FALSE_EXAMPLE = """{
  "questions": [{
    "statement": "Assertion to judge",
    "options": [
      {"label": "T", "text": "True", "correct": true},
      {"label": "F", "text": "False", "correct": false}
    ],
    "explanation": "Why the assertion is true or false",
    "difficulty": 3
  }]
}"""

ANSWER_FORMAT_NAMES = {
    "multiple_choice": "multiple choice (5 options, exactly one correct)",
    "true_false": "true/false assertion",
}

DIFFICULTY_NAMES = {
    "easy": "easy",
    "medium": "medium",
    "hard": "hard",
}

DEFAULT_EXAM_YEAR = "2025"


def _reply_format(job_config: JobConfig) -> str:
    if job_config.answer_format == "true_false":
        return TRUE_FALSE_EXAMPLE
    return MULTIPLE_CHOICE_EXAMPLE


def _extra_requirements(job_config: JobConfig) -> str:
    if not job_config.extra_instructions:
        return ""
    return (
        "\nMANDATORY REQUIREMENTS:\n"
        f"{job_config.extra_instructions}\n"
        "You MUST follow these instructions strictly.\n"
    )


def _settings_block(job_config: JobConfig) -> str:
    lines = [
        f"- Answer format: {ANSWER_FORMAT_NAMES[job_config.answer_format]}",
        f"- Exam board: {job_config.exam_board or 'Not specified'}",
        f"- Year: {job_config.exam_year or DEFAULT_EXAM_YEAR}",
        f"- Difficulty: {DIFFICULTY_NAMES.get(job_config.difficulty, job_config.difficulty)}",
    ]
    return "\n".join(lines)


def _question_word(count: int) -> str:
    return "question" if count == 1 else "questions"


# =============================================================================
# User Prompts
# =============================================================================

def build_topic_prompt(count: int, job_config: JobConfig, context: ChunkContext) -> str:
    """Prompt for a plain job: questions about a subject and topic."""
    return f"""TASK: Write {count} exam {_question_word(count)}.

CONTEXT:
- Subject: {context.subject_name}
- Topic: {context.topic_name}
{_settings_block(job_config)}
{_extra_requirements(job_config)}
REPLY FORMAT (JSON), with exactly {count} entries in "questions":
{_reply_format(job_config)}

IMPORTANT: Return ONLY the JSON, with no additional text."""


def build_document_prompt(
    count: int,
    job_config: JobConfig,
    context: ChunkContext,
    excerpt_chars: int = 8000
) -> str:
    """Prompt for a document-backed job: questions grounded in the document text."""
    excerpt = (context.document_text or "")[:excerpt_chars]
    return f"""Based on the document below, write {count} exam {_question_word(count)}.

DOCUMENT "{context.document_name}":
{excerpt}

SETTINGS:
{_settings_block(job_config)}
{_extra_requirements(job_config)}
Return ONLY valid JSON, with exactly {count} entries in "questions":
{_reply_format(job_config)}"""


def build_messages(
    count: int,
    job_config: JobConfig,
    context: ChunkContext,
    excerpt_chars: int = 8000
) -> List[Dict[str, str]]:
    """Chat messages for one generation call."""
    if job_config.is_document_backed:
        system = DOCUMENT_SYSTEM_PROMPT
        user = build_document_prompt(count, job_config, context, excerpt_chars)
    else:
        system = SYSTEM_PROMPT
        user = build_topic_prompt(count, job_config, context)

    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def describe_subject(job_config: JobConfig, resolved_name: Optional[str]) -> str:
    """Subject label for prompts and tags when no catalog name resolves."""
    if resolved_name:
        return resolved_name
    if job_config.subjects:
        return ", ".join(job_config.subjects)
    return "General"


def describe_topic(job_config: JobConfig, resolved_name: Optional[str], index: int = 0) -> str:
    if resolved_name:
        return resolved_name
    if job_config.topics:
        return job_config.topics[index % len(job_config.topics)]
    return "General"
