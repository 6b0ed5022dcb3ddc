"""
Question Service

Insert-only storage for generated questions.
"""

from typing import Optional, Dict, Any

from supabase import Client

from questionforge.errors import PersistenceError
from .client import get_supabase_admin_client


QUESTIONS_TABLE = "questions"


class QuestionService:
    """Writes generated questions. There is no update path: rows are immutable."""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_admin_client()
        return self._client

    async def insert_question(self, question_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert one question row.

        Returns:
            The stored row (including its generated id)

        Raises:
            PersistenceError: if the insert fails or returns no row
        """
        try:
            result = self.client.table(QUESTIONS_TABLE).insert(question_data).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to insert question: {e}", table=QUESTIONS_TABLE) from e

        if not result.data:
            raise PersistenceError("Question insert returned no row", table=QUESTIONS_TABLE)

        return result.data[0]
