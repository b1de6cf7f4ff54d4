from typing import Callable, List, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import firestore
from google.cloud.firestore_v1.async_client import AsyncClient

from doubt_solver.core.errors import PersistenceFailure
from doubt_solver.db.firestore import get_db
from doubt_solver.models.schemas import HistoryItem, HistoryRecord

HISTORY_FIELDS = ["queryText", "subject", "finalAnswer", "createdAt"]


class HistoryRepository:
    """Append-only log of solved doubts, one Firestore document per solution."""

    def __init__(
        self,
        db: Optional[AsyncClient] = None,
        collection: str = "doubts",
        db_factory: Optional[Callable[[], AsyncClient]] = None,
    ):
        self._db = db
        self._db_factory = db_factory
        self.collection = collection

    @property
    def db(self) -> AsyncClient:
        # built on first use; missing credentials only fail the history calls
        if self._db is None:
            self._db = (self._db_factory or get_db)()
        return self._db

    async def add(self, record: HistoryRecord) -> str:
        data = record.model_dump(by_alias=True, mode="python")
        data["subject"] = record.subject.value
        try:
            _, doc_ref = await self.db.collection(self.collection).add(data)
        except (GoogleAPIError, GoogleAuthError, OSError) as e:
            raise PersistenceFailure(str(e)) from e
        return doc_ref.id

    async def recent(self, user_id: str, limit: int = 10, subject: Optional[str] = None) -> List[HistoryItem]:
        q = self.db.collection(self.collection).where("userId", "==", user_id)
        if subject:
            q = q.where("subject", "==", subject.lower())
        q = q.order_by("createdAt", direction=firestore.Query.DESCENDING).limit(limit).select(HISTORY_FIELDS)

        items: List[HistoryItem] = []
        async for doc in q.stream():
            d = doc.to_dict() or {}
            items.append(HistoryItem(
                query_text=d.get("queryText", ""),
                subject=d.get("subject", ""),
                final_answer=d.get("finalAnswer"),
                created_at=d.get("createdAt"),
            ))
        return items
