import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List

from legalai.errors import UpstreamFailure
from legalai.utils.clock import utcnow
from legalai.utils.logger import logger


@dataclass
class DocumentRecord:
    user_id: str
    filename: str
    content_type: str
    analysis: Dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "contentType": self.content_type,
            "analysis": self.analysis,
            "createdAt": self.created_at.isoformat(),
        }


class DocumentStore:
    """Analysis history per user."""

    def add(self, record: DocumentRecord) -> DocumentRecord:
        raise NotImplementedError

    def list_for_user(self, user_id: str) -> List[DocumentRecord]:
        """Newest first."""
        raise NotImplementedError

    def delete(self, user_id: str, document_id: str) -> bool:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self._docs: Dict[str, DocumentRecord] = {}
        self._lock = threading.Lock()

    def add(self, record: DocumentRecord) -> DocumentRecord:
        with self._lock:
            self._docs[record.id] = replace(record)
        return record

    def list_for_user(self, user_id: str) -> List[DocumentRecord]:
        with self._lock:
            docs = [replace(d) for d in self._docs.values() if d.user_id == user_id]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    def delete(self, user_id: str, document_id: str) -> bool:
        with self._lock:
            doc = self._docs.get(document_id)
            if doc is None or doc.user_id != user_id:
                return False
            del self._docs[document_id]
            return True


class SupabaseDocumentStore(DocumentStore):
    TABLE = "documents"

    def __init__(self, client):
        self.client = client

    def _run(self, action: str, query):
        try:
            return query.execute().data or []
        except Exception as e:
            logger.error(f"Supabase document {action} failed: {str(e)}")
            raise UpstreamFailure("The document history service is temporarily unavailable.") from e

    @staticmethod
    def _record(row: dict) -> DocumentRecord:
        return DocumentRecord(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            filename=row["filename"],
            content_type=row["content_type"],
            analysis=row.get("analysis") or {},
            created_at=datetime.fromisoformat(str(row["created_at"]).replace("Z", "+00:00")),
        )

    def add(self, record: DocumentRecord) -> DocumentRecord:
        self._run("insert", self.client.table(self.TABLE).insert({
            "id": record.id,
            "user_id": record.user_id,
            "filename": record.filename,
            "content_type": record.content_type,
            "analysis": record.analysis,
            "created_at": record.created_at.isoformat(),
        }))
        return record

    def list_for_user(self, user_id: str) -> List[DocumentRecord]:
        rows = self._run("list", self.client.table(self.TABLE).select("*").eq("user_id", user_id).order("created_at", desc=True))
        return [self._record(r) for r in rows]

    def delete(self, user_id: str, document_id: str) -> bool:
        rows = self._run("delete", self.client.table(self.TABLE).delete().eq("id", document_id).eq("user_id", user_id))
        return len(rows) > 0
