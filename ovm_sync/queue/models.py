"""Queue data models."""
import base64
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, List


class ItemType(str, Enum):
    """Kinds of offline-captured work."""

    FORM = "form"
    PHOTO = "photo"
    SIGNATURE = "signature"
    API_CALL = "api-call"
    VEHICLE_INSPECTION = "vehicle-inspection"


FORM_TYPES = ("collection", "delivery", "expense", "collection-progress")
WORKFLOW_TYPES = ("collection", "delivery")

# Payload keys that may hold raw bytes
BINARY_FIELDS = ("content", "body")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class QueueItem:
    """Represents one unit of work waiting to be uploaded."""

    type: ItemType
    payload: Dict[str, Any]
    job_id: Optional[str] = None
    id: Optional[str] = None
    timestamp: Optional[datetime] = None
    synced: bool = False

    # Retry bookkeeping, the only fields a sync pass may change
    attempts: int = 0
    last_error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None

    def __post_init__(self):
        self.type = ItemType(self.type)

    @classmethod
    def create(cls, type: ItemType, payload: Dict[str, Any], job_id: Optional[str] = None):
        """Factory method to create a QueueItem."""
        return cls(type=type, payload=payload, job_id=job_id)

    @classmethod
    def form(cls, job_id: str, form_type: str, data: Dict[str, Any]):
        if form_type not in FORM_TYPES:
            raise ValueError(f"Unknown form type: {form_type}")
        return cls.create(ItemType.FORM, {"form_type": form_type, "data": data}, job_id)

    @classmethod
    def vehicle_inspection(cls, job_id: str, data: Dict[str, Any]):
        return cls.create(ItemType.VEHICLE_INSPECTION, {"data": data}, job_id)

    @classmethod
    def photo(cls, job_id: str, content: bytes, category: str,
              filename: str = "photo.jpg", content_type: str = "image/jpeg"):
        return cls.create(
            ItemType.PHOTO,
            {
                "category": category,
                "filename": filename,
                "content_type": content_type,
                "content": content,
            },
            job_id,
        )

    @classmethod
    def signature(cls, job_id: str, signature_type: str, signature_data: str,
                  customer_name: str, points: Optional[List[Any]] = None):
        if signature_type not in WORKFLOW_TYPES:
            raise ValueError(f"Unknown signature type: {signature_type}")
        payload = {
            "signature_type": signature_type,
            "signature_data": signature_data,
            "customer_name": customer_name,
        }
        if points is not None:
            payload["points"] = points
        return cls.create(ItemType.SIGNATURE, payload, job_id)

    @classmethod
    def api_call(cls, method: str, url: str, body: Any = None,
                 headers: Optional[Dict[str, str]] = None, job_id: Optional[str] = None):
        payload = {
            "method": method.upper(),
            "url": url,
            "body": body,
            "headers": headers or {},
        }
        return cls.create(ItemType.API_CALL, payload, job_id)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the spool file; photo content and raw api-call bodies are base64 encoded."""
        payload = dict(self.payload)
        for key in BINARY_FIELDS:
            if isinstance(payload.get(key), (bytes, bytearray)):
                payload[key] = base64.b64encode(payload[key]).decode("ascii")
                payload[f"{key}_encoding"] = "base64"
        return {
            "id": self.id,
            "type": self.type.value,
            "job_id": self.job_id,
            "payload": payload,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "synced": self.synced,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        payload = dict(data["payload"])
        for key in BINARY_FIELDS:
            if payload.pop(f"{key}_encoding", None) == "base64":
                payload[key] = base64.b64decode(payload[key])
        return cls(
            type=ItemType(data["type"]),
            payload=payload,
            job_id=data.get("job_id"),
            id=data["id"],
            timestamp=_parse_dt(data.get("timestamp")),
            synced=data.get("synced", False),
            attempts=data.get("attempts", 0),
            last_error=data.get("last_error"),
            last_attempt_at=_parse_dt(data.get("last_attempt_at")),
        )


@dataclass
class JobSubmission:
    """A whole job captured offline, shown in the pending uploads list."""

    job_id: str
    type: str  # "collection" or "delivery"
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"job_id": self.job_id, "type": self.type, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(job_id=data["job_id"], type=data["type"], timestamp=_parse_dt(data["timestamp"]))


@dataclass
class WorkflowSnapshot:
    """Saved state of an in-progress collection or delivery workflow."""

    job_id: str
    workflow_type: str
    data: Dict[str, Any]
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "workflow_type": self.workflow_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(
            job_id=data["job_id"],
            workflow_type=data["workflow_type"],
            data=data["data"],
            id=data["id"],
            timestamp=_parse_dt(data["timestamp"]),
        )


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
