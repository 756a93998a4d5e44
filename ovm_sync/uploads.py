"""Maps queued items onto remote API requests."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ovm_sync.queue.models import ItemType, QueueItem


@dataclass
class UploadRequest:
    """HTTP request descriptor for one queued item."""

    method: str
    url: str
    json: Any = None
    data: Optional[Dict[str, Any]] = None
    files: Optional[Dict[str, Tuple[str, bytes, str]]] = None
    headers: Dict[str, str] = field(default_factory=dict)


FORM_ENDPOINTS = {
    "collection": "/api/jobs/{job_id}/complete-collection",
    "delivery": "/api/jobs/{job_id}/complete-delivery",
}
AUTO_SAVE_ENDPOINT = "/api/jobs/{job_id}/auto-save"


def build_request(item: QueueItem) -> UploadRequest:
    """Build the request that delivers ``item``.

    Job-bound routes need ``item.job_id``; a missing one raises ValueError,
    which the sync pass records as a failed attempt.
    """
    payload = item.payload

    if item.type == ItemType.API_CALL:
        body = payload.get("body")
        headers = dict(payload.get("headers") or {})
        if isinstance(body, (dict, list)):
            return UploadRequest(payload["method"], payload["url"], json=body, headers=headers)
        return UploadRequest(payload["method"], payload["url"], data=body, headers=headers)

    if item.type == ItemType.VEHICLE_INSPECTION:
        body = dict(payload["data"])
        if item.job_id:
            body.setdefault("jobId", item.job_id)
        return UploadRequest("POST", "/api/vehicle-inspections", json=body)

    job_id = _require_job(item)

    if item.type == ItemType.FORM:
        template = FORM_ENDPOINTS.get(payload["form_type"], AUTO_SAVE_ENDPOINT)
        return UploadRequest("POST", template.format(job_id=job_id), json=payload["data"])

    if item.type == ItemType.PHOTO:
        files = {
            "photo": (
                payload.get("filename", "photo.jpg"),
                payload["content"],
                payload.get("content_type", "image/jpeg"),
            )
        }
        return UploadRequest(
            "POST",
            f"/api/jobs/{job_id}/photos",
            data={"jobId": job_id, "category": payload["category"]},
            files=files,
        )

    if item.type == ItemType.SIGNATURE:
        body = {
            "type": payload["signature_type"],
            "signatureData": payload["signature_data"],
            "customerName": payload["customer_name"],
            "timestamp": item.timestamp.isoformat() if item.timestamp else None,
        }
        if "points" in payload:
            body["points"] = payload["points"]
        return UploadRequest("POST", f"/api/jobs/{job_id}/signature", json=body)

    raise ValueError(f"No upload route for item type {item.type}")


def _require_job(item: QueueItem) -> str:
    if not item.job_id:
        raise ValueError(f"{item.type.value} item {item.id} has no job id")
    return item.job_id
