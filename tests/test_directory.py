"""Tests for the user-directory clients."""

import json
from datetime import datetime, timezone

import pytest
import respx
from httpx import Response

from mobileproxy.app.exceptions import ConfigurationError, UpstreamError
from mobileproxy.app.providers.credentials import GoogleTokenSource
from mobileproxy.app.providers.directory import (
    DirectoryEntry,
    FirestoreDirectory,
    InMemoryDirectory,
    to_firestore_value,
    unique_tokens,
)

DOCUMENTS = "https://firestore.googleapis.com/v1/projects/demo-project/databases/(default)/documents"
RUN_QUERY = f"{DOCUMENTS}:runQuery"


def _user_row(doc_id, token=None, role="user"):
    fields = {"role": {"stringValue": role}}
    if token is not None:
        fields["fcmToken"] = {"stringValue": token}
    return {"document": {"name": f"projects/demo-project/databases/(default)/documents/users/{doc_id}", "fields": fields}}


def test_unique_tokens():
    assert unique_tokens(["a", None, "b", "", "a"]) == ["a", "b"]


class TestFirestoreValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("text", {"stringValue": "text"}),
            (True, {"booleanValue": True}),
            (3, {"integerValue": "3"}),
            (0.5, {"doubleValue": 0.5}),
            (None, {"nullValue": None}),
        ],
    )
    def test_scalars(self, value, expected):
        assert to_firestore_value(value) == expected

    def test_timestamp_is_utc(self):
        value = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert to_firestore_value(value) == {"timestampValue": "2024-05-01T10:00:00Z"}

    def test_nested(self):
        value = {"labels": [{"description": "flood", "score": 0.9}]}

        encoded = to_firestore_value(value)

        label = encoded["mapValue"]["fields"]["labels"]["arrayValue"]["values"][0]
        assert label["mapValue"]["fields"]["description"] == {"stringValue": "flood"}


class TestInMemoryDirectory:
    @pytest.mark.asyncio
    async def test_lookup_and_annotate(self):
        directory = InMemoryDirectory(
            [DirectoryEntry("a", "admin"), DirectoryEntry("u"), DirectoryEntry(None, "admin")],
            reports={"r-1": {"ID": "r-1"}},
        )

        assert await directory.find_tokens_by_role("admin") == ["a"]
        assert await directory.find_all_tokens() == ["a", "u"]
        assert await directory.annotate_report("r-1", {"ImageURL": "x"}) is True
        assert directory.reports["r-1"]["ImageURL"] == "x"
        assert await directory.annotate_report("missing", {"ImageURL": "x"}) is False


class TestFirestoreDirectory:
    """Tests for FirestoreDirectory against a mocked REST endpoint."""

    @pytest.fixture
    def directory(self, static_credentials):
        return FirestoreDirectory(project_id="demo-project", credentials=static_credentials)

    @pytest.mark.asyncio
    @respx.mock
    async def test_find_tokens_by_role(self, directory):
        route = respx.post(RUN_QUERY).mock(return_value=Response(200, json=[
            _user_row("1", "tok-a", "admin"),
            _user_row("2", None, "admin"),
            _user_row("3", "tok-a", "admin"),
            {"readTime": "2024-05-01T10:00:00Z"},
        ]))

        tokens = await directory.find_tokens_by_role("admin")

        assert tokens == ["tok-a"]
        query = json.loads(route.calls.last.request.content)["structuredQuery"]
        assert query["from"] == [{"collectionId": "users"}]
        assert query["where"]["fieldFilter"]["field"] == {"fieldPath": "role"}
        assert query["where"]["fieldFilter"]["value"] == {"stringValue": "admin"}
        assert route.calls.last.request.headers["Authorization"] == "Bearer ya29.token"

    @pytest.mark.asyncio
    @respx.mock
    async def test_find_all_tokens_has_no_filter(self, directory):
        route = respx.post(RUN_QUERY).mock(return_value=Response(200, json=[
            _user_row("1", "tok-a"), _user_row("2", "tok-b", "admin"),
        ]))

        assert await directory.find_all_tokens() == ["tok-a", "tok-b"]
        assert "where" not in json.loads(route.calls.last.request.content)["structuredQuery"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_annotate_report_patches_matching_document(self, directory):
        doc_name = "projects/demo-project/databases/(default)/documents/reports/abc"
        respx.post(RUN_QUERY).mock(return_value=Response(200, json=[{"document": {"name": doc_name}}]))
        patch = respx.patch(f"https://firestore.googleapis.com/v1/{doc_name}").mock(
            return_value=Response(200, json={"name": doc_name})
        )

        updated = await directory.annotate_report("r-9", {"ImageURL": "https://img", "ImageLabels": []})

        assert updated is True
        request = patch.calls.last.request
        assert request.url.params.get_list("updateMask.fieldPaths") == ["ImageURL", "ImageLabels"]
        assert json.loads(request.content)["fields"]["ImageURL"] == {"stringValue": "https://img"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_annotate_missing_report(self, directory):
        respx.post(RUN_QUERY).mock(return_value=Response(200, json=[{"readTime": "2024-05-01T10:00:00Z"}]))

        assert await directory.annotate_report("nope", {"ImageURL": "x"}) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_query_failure(self, directory):
        respx.post(RUN_QUERY).mock(return_value=Response(403, json={"error": "denied"}))

        with pytest.raises(UpstreamError) as exc_info:
            await directory.find_all_tokens()

        assert exc_info.value.upstream == "directory"
        assert exc_info.value.status == 403

    @pytest.mark.asyncio
    async def test_project_required(self, static_credentials):
        with pytest.raises(ConfigurationError):
            await FirestoreDirectory(project_id="", credentials=static_credentials).find_all_tokens()

    @pytest.mark.asyncio
    @respx.mock
    async def test_project_from_default_credentials(self, expiring_credentials):
        source = GoogleTokenSource(expiring_credentials)
        source.project_id = "demo-project"
        route = respx.post(RUN_QUERY).mock(return_value=Response(200, json=[]))

        assert await FirestoreDirectory(project_id="", credentials=source).find_all_tokens() == []
        assert route.calls.last.request.headers["Authorization"] == "Bearer ya29.fresh-1"
