"""Pydantic models for request and response validation."""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SensorType(str, Enum):
    """Sensor capability a device can report."""

    MOTION = "motion"
    HEART = "heart"
    SOUND = "sound"


class DeviceRecord(BaseModel):
    """Sensor types a single device has reported, in first-seen order."""

    sensors: List[SensorType] = Field(..., min_length=1, description="Reported sensor types")

    @field_validator("sensors")
    @classmethod
    def validate_unique(cls, v: List[SensorType]) -> List[SensorType]:
        """Sensor types behave as a set: duplicates are not allowed."""
        if len(set(v)) != len(v):
            raise ValueError("Sensor types must be unique per device")
        return v


Registry = Dict[str, DeviceRecord]


class DeviceRequest(BaseModel):
    """Fields shared by every ingestion request."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(..., alias="deviceId", min_length=1, description="Device identifier")


class MotionDataRequest(DeviceRequest):
    """Request model for motion data ingestion."""

    data: Any = Field(..., description="Motion payload, accepted as-is")

    @field_validator("data")
    @classmethod
    def validate_data(cls, v: Any) -> Any:
        """Reject an explicit null payload."""
        if v is None:
            raise ValueError("Motion data must not be null")
        return v


class HeartDataRequest(DeviceRequest):
    """Request model for heart sensor ingestion."""

    # Present is enough: null and non-numeric values are accepted as-is
    bpm: Any = Field(..., description="Heart rate in bpm")
    ir: Any = Field(..., description="Raw infrared reading")


class StatusResponse(BaseModel):
    """Response model for data ingestion."""

    status: str = Field(..., description="Ingestion acknowledgement")


class ErrorResponse(BaseModel):
    """Response model for rejected requests."""

    error: str = Field(..., description="What the client must fix")
