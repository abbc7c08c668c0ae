# campus/email/schemas.py
import base64
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_serializer,
    model_validator,
)

Priority = Literal["low", "normal", "high"]


_timestamp_adapter = TypeAdapter(datetime)


def parse_timestamp(value: Union[datetime, str]) -> datetime:
    """ISO-8601 timestamp, including the ``Z`` suffix JavaScript emits"""
    return _timestamp_adapter.validate_python(value)


def generate_job_id(prefix: str = "email") -> str:
    """``<prefix>_<epoch millis>_<random>``, used when the caller gives no id"""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class EmailAttachment(BaseModel):
    """
    A file attached to an email job.

    Binary content travels as base64 on the wire, flagged with
    ``"encoding": "base64"`` so text content is never decoded by mistake.
    """

    model_config = ConfigDict(populate_by_name=True, ser_json_bytes="base64")

    filename: str
    content: Union[str, bytes]
    content_type: Optional[str] = Field(default=None, alias="contentType")

    @model_validator(mode="before")
    @classmethod
    def _decode_binary_content(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("encoding") == "base64":
            data = dict(data)
            data["content"] = base64.b64decode(data["content"])
            data.pop("encoding")
        return data

    @model_serializer(mode="wrap")
    def _flag_binary_content(self, handler, info):
        data = handler(self)
        if isinstance(self.content, bytes) and info.mode_is_json():
            # standard alphabet, not the url-safe one pydantic may emit
            data["content"] = base64.b64encode(self.content).decode("ascii")
            data["encoding"] = "base64"
        return data


class EmailJob(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    # Kept verbatim, display names included; the SMTP relay judges deliverability
    to: Union[str, List[str]]
    from_: Optional[str] = Field(default=None, alias="from")
    subject: str
    html: Optional[str] = None
    text: Optional[str] = None
    attachments: Optional[List[EmailAttachment]] = None
    priority: Optional[Priority] = None
    # Carried for consumers, the queue itself never delays delivery
    scheduled_at: Optional[datetime] = Field(default=None, alias="scheduledAt")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("to")
    @classmethod
    def _require_recipient(cls, value: Union[str, List[str]]) -> Union[str, List[str]]:
        addresses = value if isinstance(value, list) else [value]
        if not addresses or any(not address.strip() for address in addresses):
            raise ValueError("at least one non-empty recipient address is required")
        return value

    @property
    def recipients(self) -> List[str]:
        return list(self.to) if isinstance(self.to, list) else [self.to]

    @property
    def is_high_priority(self) -> bool:
        return self.priority == "high"

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, raw: Union[str, bytes]) -> "EmailJob":
        return cls.model_validate_json(raw)


class QueueStats(BaseModel):
    depth: int
    normal: int
    high: int
    processing: int
    retry: int
    timestamp: datetime
