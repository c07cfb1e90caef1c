"""FastAPI endpoints for device sensor ingestion."""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from device_ingest.config import DEVICES_FILE, MAX_SOUND_FILE_BYTES, SOUND_FILE_FIELD
from device_ingest.models import (
    DeviceRecord,
    ErrorResponse,
    HeartDataRequest,
    MotionDataRequest,
    Registry,
    SensorType,
    StatusResponse,
)
from device_ingest.storage import DeviceRegistry, JsonFileBackend

logger = logging.getLogger(__name__)

router = APIRouter()
UPLOAD_CHUNK_BYTES = 64 * 1024
device_registry = DeviceRegistry(JsonFileBackend(DEVICES_FILE))

ERROR_RESPONSES = {status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}}

# Error message returned for a rejected request, by endpoint path
REQUIRED_FIELDS = {
    "/api/motion": "deviceId and data required",
    "/api/heart": "deviceId, bpm and ir required",
    "/api/sound": f"deviceId and {SOUND_FILE_FIELD} file required",
}


def get_registry() -> DeviceRegistry:
    """Dependency returning the process-wide device registry."""
    return device_registry


async def _record(registry: DeviceRegistry, device_id: str, sensor_type: SensorType) -> None:
    try:
        await registry.register_sensor(device_id, sensor_type)
    except OSError:
        logger.exception(f"Failed to save registry after {sensor_type.value} from {device_id}")
        raise


@router.post(
    "/api/motion",
    response_model=StatusResponse,
    responses=ERROR_RESPONSES,
    summary="Ingest motion data",
    description="Accept a motion reading and register the device's motion sensor",
)
async def ingest_motion(
    body: MotionDataRequest,
    registry: DeviceRegistry = Depends(get_registry),
) -> StatusResponse:
    """Ingest a motion reading. The payload itself is not stored."""
    await _record(registry, body.device_id, SensorType.MOTION)
    return StatusResponse(status="motion data received")


@router.post(
    "/api/heart",
    response_model=StatusResponse,
    responses=ERROR_RESPONSES,
    summary="Ingest heart sensor data",
    description="Accept a bpm/ir reading and register the device's heart sensor",
)
async def ingest_heart(
    body: HeartDataRequest,
    registry: DeviceRegistry = Depends(get_registry),
) -> StatusResponse:
    """Ingest a heart sensor reading. Values are not range-checked or stored."""
    await _record(registry, body.device_id, SensorType.HEART)
    return StatusResponse(status="heart data received")


@router.post(
    "/api/sound",
    response_model=StatusResponse,
    responses={
        **ERROR_RESPONSES,
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
    },
    summary="Ingest sound file",
    description="Accept an audio upload and register the device's sound sensor",
)
async def ingest_sound(
    device_id: str = Form(..., alias="deviceId", min_length=1),
    audio: UploadFile = File(..., alias=SOUND_FILE_FIELD),
    registry: DeviceRegistry = Depends(get_registry),
) -> StatusResponse:
    """
    Ingest an audio file from a device.

    Any content type is accepted. Files over MAX_SOUND_FILE_BYTES are
    rejected with 413 before the registry is touched. The upload stays in
    the server's temporary spool and is discarded after the request.
    """
    size = 0
    chunk = await audio.read(UPLOAD_CHUNK_BYTES)
    while chunk:
        size += len(chunk)
        if size > MAX_SOUND_FILE_BYTES:
            logger.warning(f"Rejected oversized sound file from {device_id}")
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail=f"Sound file exceeds {MAX_SOUND_FILE_BYTES} bytes",
            )
        chunk = await audio.read(UPLOAD_CHUNK_BYTES)

    logger.debug(f"Received sound file {audio.filename!r} ({size} bytes) from {device_id}")
    await _record(registry, device_id, SensorType.SOUND)
    return StatusResponse(status="sound file received")


@router.get(
    "/api/devices",
    response_model=Registry,
    summary="List registered devices",
    description="Return every device with the sensor types it has reported",
)
async def list_devices(registry: DeviceRegistry = Depends(get_registry)) -> Registry:
    """Return the full device registry."""
    return await registry.get_devices()


@router.get(
    "/api/devices/{device_id}",
    response_model=DeviceRecord,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Get a registered device",
)
async def get_device(
    device_id: str,
    registry: DeviceRegistry = Depends(get_registry),
) -> DeviceRecord:
    """Return the sensor types one device has reported."""
    record = await registry.get_device(device_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"device {device_id} not registered",
        )
    return record


@router.get("/health", summary="Health check endpoint")
async def health_check() -> dict[str, str]:
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "service": "device-ingest"}
