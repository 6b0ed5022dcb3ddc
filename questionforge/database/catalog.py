"""
Context Catalog Service

Read-only lookups the worker needs to describe a job to the generator:
subject and topic names for a study context, and uploaded source documents
with their extracted text.
"""

from typing import Optional, Dict, Any

from supabase import Client

from .client import get_supabase_admin_client


SUBJECTS_TABLE = "context_subjects"
TOPICS_TABLE = "context_topics"
DOCUMENTS_TABLE = "source_documents"


class CatalogService:
    """
    Lookups by id. Subject and topic names are cached for the lifetime of
    the service since topics are reused round-robin across chunks.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client
        self._names: Dict[tuple, Optional[str]] = {}

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_admin_client()
        return self._client

    async def _get_name(self, table: str, row_id: str) -> Optional[str]:
        key = (table, str(row_id))
        if key not in self._names:
            result = (
                self.client.table(table)
                .select("id, name")
                .eq("id", row_id)
                .limit(1)
                .execute()
            )
            self._names[key] = result.data[0].get("name") if result.data else None
        return self._names[key]

    async def get_subject_name(self, subject_id: str) -> Optional[str]:
        return await self._get_name(SUBJECTS_TABLE, subject_id)

    async def get_topic_name(self, topic_id: str) -> Optional[str]:
        return await self._get_name(TOPICS_TABLE, topic_id)

    async def get_source_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Get an uploaded document (file_name, extracted_text) by id."""
        result = (
            self.client.table(DOCUMENTS_TABLE)
            .select("id, file_name, extracted_text")
            .eq("id", document_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None
