"""
Structured reply schema for question generation.

The model is asked for:

    {"questions": [{"statement": "...",
                    "options": [{"label": "A", "text": "...", "correct": false}, ...],
                    "explanation": "...",
                    "difficulty": 3}]}

Each record is validated on its own so one malformed question does not
discard the rest of the batch.
"""

import string
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class GeneratedOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    label: str = Field(validation_alias=AliasChoices("label", "letter"))
    text: str = ""
    correct: bool = Field(default=False, validation_alias=AliasChoices("correct", "is_correct"))

    @field_validator("label", mode="before")
    @classmethod
    def normalize_label(cls, v):
        return str(v).strip() if v is not None else v


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    statement: str = Field(min_length=1, validation_alias=AliasChoices("statement", "question"))
    options: List[GeneratedOption] = Field(min_length=2)
    explanation: str = ""
    difficulty: Optional[int] = None
    answer: Optional[str] = None

    @field_validator("statement")
    @classmethod
    def statement_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("statement is blank")
        return v.strip()

    @field_validator("options", mode="before")
    @classmethod
    def fill_missing_labels(cls, v: Any):
        # Options without a label get A, B, C... by position
        if not isinstance(v, list):
            return v
        filled = []
        for index, option in enumerate(v):
            if isinstance(option, str):
                option = {"text": option}
            if isinstance(option, dict) and not (option.get("label") or option.get("letter")):
                option = {**option, "label": string.ascii_uppercase[index % 26]}
            filled.append(option)
        return filled

    @field_validator("explanation", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @field_validator("difficulty", mode="before")
    @classmethod
    def clamp_difficulty(cls, v):
        try:
            level = int(v)
        except (TypeError, ValueError):
            return None
        return min(max(level, 1), 5)

    @property
    def correct_label(self) -> str:
        """
        Authoritative answer: the first option flagged correct; failing that
        an explicit answer label that names an option; failing that the
        first option.
        """
        for option in self.options:
            if option.correct:
                return option.label
        if self.answer:
            wanted = self.answer.strip().upper()
            for option in self.options:
                if option.label.upper() == wanted:
                    return option.label
        return self.options[0].label

    def options_payload(self) -> List[dict]:
        """Options as stored, with exactly one option marked correct."""
        answer = self.correct_label
        return [
            {"label": option.label, "text": option.text, "correct": option.label == answer}
            for option in self.options
        ]
