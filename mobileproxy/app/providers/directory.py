"""User-directory clients.

The directory is where device tokens live: one document per user with a
``role`` and an ``fcmToken`` field. It also holds the report documents that
image annotations are written back to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx

from mobileproxy.app.core.logging import get_log_context, get_logger
from mobileproxy.app.exceptions import ConfigurationError
from mobileproxy.app.providers.base import BaseUpstream
from mobileproxy.app.providers.credentials import GoogleTokenSource

logger = get_logger(__name__)


def unique_tokens(tokens: Iterable[Optional[str]]) -> List[str]:
    """Drop empty and duplicate tokens, keeping first-seen order."""
    return list(dict.fromkeys(t for t in tokens if t))


class UserDirectory(ABC):
    """Read access to delivery tokens plus report annotation writes."""

    @abstractmethod
    async def find_tokens_by_role(self, role: str) -> List[str]:
        pass

    @abstractmethod
    async def find_all_tokens(self) -> List[str]:
        pass

    @abstractmethod
    async def annotate_report(self, report_id: str, fields: Dict[str, Any]) -> bool:
        """Merge ``fields`` into the report whose ``ID`` is ``report_id``.

        Returns:
            False when no such report exists
        """
        pass


@dataclass
class DirectoryEntry:
    token: Optional[str]
    role: str = "user"


class InMemoryDirectory(UserDirectory):
    """Directory backed by plain lists, for development and tests."""

    def __init__(
        self,
        entries: Optional[List[DirectoryEntry]] = None,
        reports: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.entries = list(entries or [])
        self.reports = reports if reports is not None else {}

    async def find_tokens_by_role(self, role: str) -> List[str]:
        return unique_tokens(e.token for e in self.entries if e.role == role)

    async def find_all_tokens(self) -> List[str]:
        return unique_tokens(e.token for e in self.entries)

    async def annotate_report(self, report_id: str, fields: Dict[str, Any]) -> bool:
        report = self.reports.get(report_id)
        if report is None:
            return False
        report.update(fields)
        return True


def to_firestore_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore REST ``Value``."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {k: to_firestore_value(v) for k, v in value.items()}}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [to_firestore_value(v) for v in value]}}
    return {"stringValue": str(value)}


class FirestoreDirectory(BaseUpstream, UserDirectory):
    """Directory backed by Cloud Firestore, through its REST API."""

    name = "directory"

    def __init__(
        self,
        project_id: str,
        credentials: GoogleTokenSource,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        base_url: str = "https://firestore.googleapis.com/v1",
        users_collection: str = "users",
        reports_collection: str = "reports",
        token_field: str = "fcmToken",
        role_field: str = "role",
    ):
        super().__init__(http_client, timeout)
        self.project_id = project_id
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.users_collection = users_collection
        self.reports_collection = reports_collection
        self.token_field = token_field
        self.role_field = role_field

    def _documents_url(self, project_id: str) -> str:
        return f"{self.base_url}/projects/{project_id}/databases/(default)/documents"

    async def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {await self.credentials.token()}",
            "Content-Type": "application/json",
        }

    async def _resolve_project(self) -> str:
        if self.project_id:
            return self.project_id
        # Application Default Credentials may carry the project
        await self.credentials.token()
        if not self.credentials.project_id:
            raise ConfigurationError("directory not configured (FIREBASE_PROJECT_ID)")
        return self.credentials.project_id

    async def _run_query(self, structured_query: Dict[str, Any]) -> List[Dict[str, Any]]:
        project_id = await self._resolve_project()
        rows = await self._send_json(
            "POST",
            f"{self._documents_url(project_id)}:runQuery",
            headers=await self._build_headers(),
            json={"structuredQuery": structured_query},
        )
        # runQuery streams one row per result; rows without a document only
        # carry read metadata.
        return [row["document"] for row in rows if isinstance(row, dict) and "document" in row]

    def _tokens_from(self, documents: List[Dict[str, Any]]) -> List[str]:
        tokens = (
            doc.get("fields", {}).get(self.token_field, {}).get("stringValue")
            for doc in documents
        )
        return unique_tokens(tokens)

    @staticmethod
    def _equals(field_path: str, value: str) -> Dict[str, Any]:
        return {
            "fieldFilter": {
                "field": {"fieldPath": field_path},
                "op": "EQUAL",
                "value": {"stringValue": value},
            }
        }

    async def find_tokens_by_role(self, role: str) -> List[str]:
        documents = await self._run_query({
            "from": [{"collectionId": self.users_collection}],
            "where": self._equals(self.role_field, role),
        })
        tokens = self._tokens_from(documents)
        logger.debug(
            f"Directory lookup for role={role} returned {len(tokens)} tokens",
            extra=get_log_context(upstream=self.name),
        )
        return tokens

    async def find_all_tokens(self) -> List[str]:
        documents = await self._run_query({
            "from": [{"collectionId": self.users_collection}],
        })
        return self._tokens_from(documents)

    async def annotate_report(self, report_id: str, fields: Dict[str, Any]) -> bool:
        documents = await self._run_query({
            "from": [{"collectionId": self.reports_collection}],
            "where": self._equals("ID", report_id),
            "limit": 1,
        })
        if not documents:
            logger.info(
                f"No report document with ID {report_id}; skipping annotation",
                extra=get_log_context(upstream=self.name),
            )
            return False

        await self._send_json(
            "PATCH",
            f"{self.base_url}/{documents[0]['name']}",
            headers=await self._build_headers(),
            params=[("updateMask.fieldPaths", name) for name in fields],
            json={"fields": {k: to_firestore_value(v) for k, v in fields.items()}},
        )
        return True
