"""Pydantic models for event scan requests, captured events and results.

This module defines the data models exchanged between the scan pipeline and
its consumers. Python attributes are snake_case; the wire representation uses
the camelCase names consumers expect (``eventName``) through field aliases.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import NavigationTimeout


UNNAMED_EVENT = "unnamed"


class ScanState(str, Enum):
    """Lifecycle states of a single scan request."""
    IDLE = "idle"
    VALIDATING = "validating"
    LAUNCHING = "launching"
    INJECTING = "injecting"
    NAVIGATING = "navigating"
    SETTLING = "settling"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanState.DONE, ScanState.FAILED)


class ScanRequest(BaseModel):
    """Inbound scan request.

    ``url`` is optional here so that a missing URL reaches the
    response assembler and is reported in the uniform failure shape instead
    of a framework validation error.
    """

    url: Optional[str] = Field(
        default=None,
        description="Absolute http(s) URL of the page to scan",
        examples=["https://example.com"]
    )


class ScannedEvent(BaseModel):
    """A single analytics emission captured inside the page."""

    model_config = ConfigDict(populate_by_name=True)

    event_name: str = Field(
        default=UNNAMED_EVENT,
        alias="eventName",
        description="Event name; 'unnamed' when the emitting call supplied none"
    )
    timestamp: int = Field(
        ...,
        ge=0,
        description="Capture time in milliseconds since the epoch"
    )
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Pushed object or event parameters"
    )
    selector: Optional[str] = Field(
        default=None,
        description="Id of the element holding focus at capture time (best-effort)"
    )

    @field_validator('event_name', mode='before')
    @classmethod
    def default_event_name(cls, v):
        if v is None:
            return UNNAMED_EVENT
        v = str(v)
        return v if v.strip() else UNNAMED_EVENT

    @field_validator('timestamp', mode='before')
    @classmethod
    def coerce_timestamp(cls, v):
        # Date.now() arrives as a float through the JS bridge
        if isinstance(v, float):
            return int(v)
        return v

    @field_validator('payload', mode='before')
    @classmethod
    def normalize_payload(cls, v):
        if v is None:
            return {}
        if isinstance(v, dict):
            return v
        return {"value": v}

    @field_validator('selector', mode='before')
    @classmethod
    def normalize_selector(cls, v):
        if v is None:
            return None
        v = str(v)
        return v or None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the wire field names, omitting an absent selector."""
        data = {
            "eventName": self.event_name,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }
        if self.selector:
            data["selector"] = self.selector
        return data


class ScanResult(BaseModel):
    """Uniform result returned for every scan request."""

    success: bool = Field(..., description="Whether the scan completed")
    events: List[ScannedEvent] = Field(
        default_factory=list,
        description="Captured events in capture order"
    )
    message: Optional[str] = Field(default=None, description="Summary on success")
    error: Optional[str] = Field(default=None, description="Failure description")

    @property
    def event_count(self) -> int:
        return len(self.events)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the response contract shape."""
        data: Dict[str, Any] = {
            "success": self.success,
            "events": [event.to_wire() for event in self.events],
        }
        if self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data

    class Config:
        """Pydantic configuration with examples for OpenAPI documentation."""
        json_schema_extra = {
            "example": {
                "success": True,
                "events": [
                    {
                        "eventName": "purchase",
                        "timestamp": 1705312200000,
                        "payload": {"event": "purchase", "value": 42},
                        "selector": "checkout-button"
                    }
                ],
                "message": "Captured 1 event(s)"
            }
        }


@dataclass
class ScanReport:
    """Host-side record of one scan; never sent over the wire."""
    url: Optional[str]
    result: ScanResult
    state: ScanState
    error: Optional[Exception] = None
    navigation_timeout: Optional[NavigationTimeout] = None
    duration_ms: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.result.success

    @property
    def navigation_timed_out(self) -> bool:
        """Whether the page missed its load state; the scan still completed."""
        return self.navigation_timeout is not None
