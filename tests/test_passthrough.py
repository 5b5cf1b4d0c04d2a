"""Tests for the vision and maps pass-through endpoints."""

import json

import pytest
import respx
from httpx import Response

from mobileproxy.app.exceptions import ConfigurationError
from mobileproxy.app.providers.maps import MapsClient
from mobileproxy.app.providers.vision import VisionClient, reshape_annotations

VISION_URL = "https://vision.googleapis.com/v1/images:annotate"
MAPS_URL = "https://maps.googleapis.com/maps/api"

VISION_RESPONSE = {
    "responses": [
        {
            "labelAnnotations": [
                {"mid": "/m/01", "description": "Flood", "score": 0.93, "topicality": 0.9},
            ],
            "localizedObjectAnnotations": [
                {"mid": "/m/02", "name": "Car", "score": 0.81, "boundingPoly": {}},
            ],
            "safeSearchAnnotation": {"adult": "VERY_UNLIKELY", "violence": "UNLIKELY"},
        }
    ]
}


class TestReshape:
    def test_keeps_name_and_score_only(self):
        annotations = reshape_annotations(VISION_RESPONSE)

        assert annotations.labels == [{"description": "Flood", "score": 0.93}]
        assert annotations.objects == [{"name": "Car", "score": 0.81}]
        assert annotations.safe_search == {"adult": "VERY_UNLIKELY", "violence": "UNLIKELY"}

    @pytest.mark.parametrize("data", [{}, {"responses": []}, {"responses": [{}]}, None])
    def test_empty(self, data):
        annotations = reshape_annotations(data)

        assert annotations.labels == []
        assert annotations.objects == []
        assert annotations.safe_search == {}


class TestVisionAnalyze:
    @respx.mock
    def test_annotates_and_records_on_report(self, client, directory):
        route = respx.post(VISION_URL).mock(return_value=Response(200, json=VISION_RESPONSE))

        response = client.post(
            "/vision-analyze", json={"imageUrl": "https://img.example/1.jpg", "reportId": "r-1"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "labels": [{"description": "Flood", "score": 0.93}],
            "objects": [{"name": "Car", "score": 0.81}],
            "safeSearch": {"adult": "VERY_UNLIKELY", "violence": "UNLIKELY"},
        }
        request = route.calls.last.request
        assert request.url.params["key"] == "vision-key"
        sent = json.loads(request.content)["requests"][0]
        assert sent["image"] == {"source": {"imageUri": "https://img.example/1.jpg"}}

        report = directory.reports["r-1"]
        assert report["ImageURL"] == "https://img.example/1.jpg"
        assert report["ImageLabels"] == [{"description": "Flood", "score": 0.93}]
        assert "ImageAnalyzedAt" in report

    @respx.mock
    def test_unknown_report_still_returns_labels(self, client):
        respx.post(VISION_URL).mock(return_value=Response(200, json=VISION_RESPONSE))

        response = client.post("/vision-analyze", json={"imageUrl": "https://img", "reportId": "nope"})

        assert response.status_code == 200
        assert response.json()["labels"][0]["description"] == "Flood"

    def test_requires_image_and_report(self, client):
        response = client.post("/vision-analyze", json={"imageUrl": "https://img"})

        assert response.status_code == 400
        assert response.json() == {"error": "imageUrl and reportId required"}

    def test_unconfigured(self, client, proxy_state):
        proxy_state.vision = VisionClient(api_key="")

        response = client.post("/vision-analyze", json={"imageUrl": "https://img", "reportId": "r-1"})

        assert response.status_code == 500
        assert response.json()["error"] == "server_not_configured"

    @respx.mock
    def test_upstream_failure(self, client):
        respx.post(VISION_URL).mock(return_value=Response(403, json={"error": "bad key"}))

        response = client.post("/vision-analyze", json={"imageUrl": "https://img", "reportId": "r-1"})

        assert response.status_code == 500
        assert response.json()["upstream"] == "vision"


class TestMapsPassthrough:
    @respx.mock
    def test_relays_query_with_server_key(self, client):
        route = respx.get(f"{MAPS_URL}/geocode/json").mock(
            return_value=Response(200, json={"status": "OK", "results": []})
        )

        response = client.get("/maps/geocode", params={"address": "Pier 4", "key": "client-key"})

        assert response.status_code == 200
        assert response.json() == {"status": "OK", "results": []}
        params = route.calls.last.request.url.params
        assert params["address"] == "Pier 4"
        assert params.get_list("key") == ["maps-key"]

    @respx.mock
    def test_nested_service_path(self, client):
        route = respx.get(f"{MAPS_URL}/place/autocomplete/json").mock(
            return_value=Response(200, json={"predictions": []})
        )

        response = client.get("/maps/place/autocomplete", params={"input": "pie"})

        assert response.status_code == 200
        assert route.called

    @respx.mock
    def test_upstream_status_is_relayed(self, client):
        respx.get(f"{MAPS_URL}/directions/json").mock(
            return_value=Response(400, json={"status": "INVALID_REQUEST"})
        )

        response = client.get("/maps/directions")

        assert response.status_code == 400
        assert response.json() == {"status": "INVALID_REQUEST"}

    def test_unknown_service(self, client):
        response = client.get("/maps/staticmap")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        with pytest.raises(ConfigurationError):
            await MapsClient(api_key="").forward("geocode", [])
