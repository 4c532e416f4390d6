"""
Supabase-backed DocumentStore.

Documents live in a single `documents` table:

    collection text, doc_id text, data jsonb, version integer,
    primary key (collection, doc_id)

Reads and queries go through the PostgREST table API. Commits call the
commit_documents() PostgreSQL function (see sql/commit_documents.sql), which:
- locks every row the transaction read or writes (FOR UPDATE),
- compares their versions to the ones the transaction saw,
- applies all writes and bumps versions,
all inside one database transaction. A version mismatch returns
{"success": false, "error": "VERSION_CONFLICT"} and writes nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from domain.errors import NotFound
from repositories.document_store import (
    DocKey,
    DocumentStore,
    Filter,
    PendingWrite,
    TransactionConflict,
)

logger = logging.getLogger(__name__)

# Supabase table holding every document.
# Keep this aligned with sql/commit_documents.sql.
_DOCUMENTS_TABLE: str = "documents"
_COMMIT_FUNCTION: str = "commit_documents"

_FILTER_METHODS: Dict[str, str] = {
    "==": "eq",
    "!=": "neq",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
    "in": "in_",
}


def _json_path(field_name: str) -> str:
    return f"data->>{field_name}"


class SupabaseDocumentStore(DocumentStore):
    def __init__(self, client: Any) -> None:
        self._client = client

    def _load(self, collection: str, doc_id: str) -> Tuple[Optional[Dict[str, Any]], int]:
        response = (
            self._client.table(_DOCUMENTS_TABLE)
            .select("data,version")
            .eq("collection", collection)
            .eq("doc_id", doc_id)
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to load {collection}/{doc_id}: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None, 0
        row = rows[0]
        return dict(row["data"]), int(row["version"])

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        request = self._client.table(_DOCUMENTS_TABLE).select("doc_id,data,version").eq("collection", collection)

        for field_name, op, value in filters:
            method_name = _FILTER_METHODS.get(op)
            if method_name is None:
                raise ValueError(f"Unsupported filter operator: {op!r}")
            if op == "in":
                value = [str(item) for item in value]
            elif isinstance(value, bool):
                value = "true" if value else "false"
            request = getattr(request, method_name)(_json_path(field_name), value)

        if order_by is not None:
            request = request.order(_json_path(order_by), desc=descending)
        if limit is not None:
            request = request.limit(limit)

        response = request.execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to query {collection}: {error}")

        rows = getattr(response, "data", None) or []
        return [dict(row["data"]) for row in rows]

    def _commit(self, read_versions: Mapping[DocKey, int], writes: Sequence[PendingWrite]) -> None:
        from postgrest.exceptions import APIError

        payload = {
            "p_reads": [
                {"collection": collection, "doc_id": doc_id, "version": version}
                for (collection, doc_id), version in read_versions.items()
            ],
            "p_writes": [
                {"op": write.op, "collection": write.collection, "doc_id": write.doc_id, "data": write.data}
                for write in writes
            ],
        }

        try:
            response = self._client.rpc(_COMMIT_FUNCTION, payload).execute()
        except APIError as e:
            # supabase-py raises APIError for some JSON bodies returned by a
            # function, including successful ones.
            error_data = e.json() if callable(getattr(e, "json", None)) else {}
            if not isinstance(error_data, dict):
                error_data = {}
            if error_data.get("success") is True:
                return
            self._raise_for_result(error_data, default_message=str(e))
            return

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to commit documents: {error}")

        result = getattr(response, "data", None) or {}
        if result.get("success"):
            return
        self._raise_for_result(result, default_message="commit rejected")

    @staticmethod
    def _raise_for_result(result: Mapping[str, Any], *, default_message: str) -> None:
        code = result.get("error")
        message = result.get("message") or default_message
        if code in ("VERSION_CONFLICT", "ALREADY_EXISTS"):
            raise TransactionConflict(message)
        if code == "MISSING_DOCUMENT":
            raise NotFound(message)
        raise RuntimeError(f"Failed to commit documents: {code or 'API_ERROR'}: {message}")


__all__ = ["SupabaseDocumentStore"]
