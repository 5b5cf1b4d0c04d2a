"""Cloud Vision pass-through used to label report photos."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from mobileproxy.app.exceptions import ConfigurationError
from mobileproxy.app.providers.base import BaseUpstream

VISION_FEATURES = ("LABEL_DETECTION", "OBJECT_LOCALIZATION", "SAFE_SEARCH_DETECTION")
MAX_RESULTS = 10


@dataclass
class ImageAnnotations:
    labels: List[Dict[str, Any]] = field(default_factory=list)
    objects: List[Dict[str, Any]] = field(default_factory=list)
    safe_search: Dict[str, Any] = field(default_factory=dict)


def reshape_annotations(data: Any) -> ImageAnnotations:
    """Keep only description/name and score from the first image response."""
    responses = data.get("responses") if isinstance(data, dict) else None
    first = (responses or [{}])[0] or {}
    return ImageAnnotations(
        labels=[
            {"description": label.get("description"), "score": label.get("score")}
            for label in first.get("labelAnnotations", [])
        ],
        objects=[
            {"name": obj.get("name"), "score": obj.get("score")}
            for obj in first.get("localizedObjectAnnotations", [])
        ],
        safe_search=first.get("safeSearchAnnotation", {}),
    )


class VisionClient(BaseUpstream):
    """Google Cloud Vision ``images:annotate`` client."""

    name = "vision"

    def __init__(
        self,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
        api_url: str = "https://vision.googleapis.com/v1/images:annotate",
    ):
        super().__init__(http_client, timeout)
        self.api_key = api_key
        self.api_url = api_url

    async def annotate(self, image_url: str) -> ImageAnnotations:
        """Label an image by URL.

        Raises:
            ConfigurationError: ``VISION_API_KEY`` is not set
            UpstreamError: the annotation call failed
        """
        if not self.api_key:
            raise ConfigurationError("VISION_API_KEY not configured")

        payload = {
            "requests": [
                {
                    "image": {"source": {"imageUri": image_url}},
                    "features": [
                        {"type": feature, "maxResults": MAX_RESULTS}
                        for feature in VISION_FEATURES
                    ],
                }
            ]
        }
        data = await self._send_json(
            "POST", self.api_url, params={"key": self.api_key}, json=payload
        )
        return reshape_annotations(data)
