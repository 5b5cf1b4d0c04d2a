"""Thin pass-through endpoints: image annotation and Maps web services."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mobileproxy.app.api.dependencies import get_directory, get_maps_client, get_vision_client
from mobileproxy.app.core.logging import get_logger
from mobileproxy.app.exceptions import ValidationError
from mobileproxy.app.providers.directory import UserDirectory
from mobileproxy.app.providers.maps import ALLOWED_SERVICES, MapsClient
from mobileproxy.app.providers.vision import VisionClient

router = APIRouter()
logger = get_logger(__name__)


class VisionAnalyzeRequest(BaseModel):
    imageUrl: Optional[str] = None
    reportId: Optional[str] = None


@router.post("/vision-analyze")
async def vision_analyze(
    body: Optional[VisionAnalyzeRequest] = None,
    vision: VisionClient = Depends(get_vision_client),
    directory: UserDirectory = Depends(get_directory),
) -> Dict[str, Any]:
    """Label a report photo and record the labels on the report document."""
    body = body or VisionAnalyzeRequest()
    if not body.imageUrl or not body.reportId:
        raise ValidationError("imageUrl and reportId required")

    annotations = await vision.annotate(body.imageUrl)

    updated = await directory.annotate_report(
        body.reportId,
        {
            "ImageLabels": annotations.labels,
            "ImageObjects": annotations.objects,
            "SafeSearch": annotations.safe_search,
            "ImageURL": body.imageUrl,
            "ImageAnalyzedAt": datetime.now(timezone.utc),
        },
    )
    if not updated:
        logger.info(f"Report {body.reportId} not found; annotations returned only to caller")

    return {
        "success": True,
        "labels": annotations.labels,
        "objects": annotations.objects,
        "safeSearch": annotations.safe_search,
    }


@router.get("/maps/{service:path}")
async def maps_passthrough(
    service: str,
    request: Request,
    maps: MapsClient = Depends(get_maps_client),
) -> JSONResponse:
    """Relay a Maps web-service query with the server key attached."""
    if service not in ALLOWED_SERVICES:
        raise HTTPException(status_code=404, detail=f"Unknown maps service: {service}")

    status_code, data = await maps.forward(service, list(request.query_params.multi_items()))
    return JSONResponse(status_code=status_code, content=data)
