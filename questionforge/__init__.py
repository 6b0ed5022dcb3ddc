"""QuestionForge: background worker that turns question generation jobs into stored questions."""

__version__ = "1.0.0"
