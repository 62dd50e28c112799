import logging
import uuid
from typing import Dict, Optional

from docflow.cache_store import CacheStore
from docflow.ocr_client import OCRClient
from docflow.orchestrator import DocumentSession

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self):
        self._sessions: Dict[str, DocumentSession] = {}

    def create(
        self, ocr_client: OCRClient, cache_store: CacheStore
    ) -> tuple[str, DocumentSession]:
        session_id = uuid.uuid4().hex
        session = DocumentSession(ocr_client, cache_store)
        self._sessions[session_id] = session
        logger.info(f"Opened session {session_id}")
        return session_id, session

    def get(self, session_id: str) -> Optional[DocumentSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        """Close and forget a session. Returns False if it was unknown."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Closed session {session_id}")
        return True

    def clear(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()

    @property
    def session_count(self) -> int:
        return len(self._sessions)


# Singleton instance
session_manager = SessionManager()
