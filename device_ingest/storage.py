"""Device registry storage: which sensor types each device has reported."""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from device_ingest.models import DeviceRecord, Registry, SensorType

logger = logging.getLogger(__name__)

_SENSOR_VALUES = {sensor_type.value for sensor_type in SensorType}


def serialize_registry(registry: Registry) -> str:
    """Render the registry as its persisted JSON document (2-space indent)."""
    return json.dumps(
        {device_id: record.model_dump(mode="json") for device_id, record in registry.items()},
        indent=2,
        ensure_ascii=False,
    )


def _sanitize_record(device_id: str, value: Any) -> Optional[DeviceRecord]:
    """Validate one device entry, keeping whatever valid sensor types it holds."""
    try:
        return DeviceRecord.model_validate(value)
    except ValidationError:
        pass

    sensors = value.get("sensors") if isinstance(value, dict) else None
    if not isinstance(sensors, list):
        logger.warning(f"Dropping device {device_id!r}: entry has no sensor list")
        return None

    # dict.fromkeys drops duplicates and keeps first-seen order
    valid = list(dict.fromkeys(s for s in sensors if isinstance(s, str) and s in _SENSOR_VALUES))
    if not valid:
        logger.warning(f"Dropping device {device_id!r}: no valid sensor types in {sensors!r}")
        return None

    logger.warning(f"Repaired sensor list for device {device_id!r}: {sensors!r} -> {valid!r}")
    return DeviceRecord(sensors=[SensorType(s) for s in valid])


def parse_or_default(text: str) -> Registry:
    """
    Parse a registry document, falling back to an empty registry.

    A document that is not JSON, or whose top level is not an object, is
    treated as "no devices yet" and overwritten by the next save. Inside a
    well-formed document each device entry is checked on its own: unknown
    or repeated sensor types are removed, and entries left with no valid
    sensor type are dropped. Other devices are kept.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Registry document is not valid JSON, starting empty: {e}")
        return {}

    if not isinstance(document, dict):
        logger.warning(f"Registry document is a {type(document).__name__}, not an object, starting empty")
        return {}

    registry: Registry = {}
    for device_id, value in document.items():
        record = _sanitize_record(device_id, value)
        if record is not None:
            registry[device_id] = record
    return registry


class RegistryBackend(ABC):
    """Persistence for the whole registry, loaded and saved as one document."""

    @abstractmethod
    def load(self) -> Registry:
        """Return the persisted registry, or an empty one if unavailable."""

    @abstractmethod
    def save(self, registry: Registry) -> None:
        """Overwrite the persisted registry. Storage errors propagate."""


class JsonFileBackend(RegistryBackend):
    """Registry backed by a single pretty-printed JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Registry:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read registry at {self.path}, starting empty: {e}")
            return {}
        return parse_or_default(text)

    def save(self, registry: Registry) -> None:
        # Write to a sibling file and swap it in so readers never see a partial document
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        temp_path.write_text(serialize_registry(registry), encoding="utf-8")
        os.replace(temp_path, self.path)
        logger.debug(f"Saved {len(registry)} devices to {self.path}")


class MemoryBackend(RegistryBackend):
    """Registry kept in process memory as serialized document text."""

    def __init__(self, document: Optional[str] = None):
        self.document = document

    def load(self) -> Registry:
        if self.document is None:
            return {}
        return parse_or_default(self.document)

    def save(self, registry: Registry) -> None:
        self.document = serialize_registry(registry)


class DeviceRegistry:
    """Records which sensor types each device has reported."""

    def __init__(self, backend: RegistryBackend):
        """Initialize the registry over a storage backend."""
        self.backend = backend
        self.write_lock = asyncio.Lock()

    async def register_sensor(self, device_id: str, sensor_type: SensorType) -> DeviceRecord:
        """
        Record that a device has reported a sensor type.

        The load-modify-save cycle runs under a lock so concurrent
        registrations for the same device cannot overwrite each other.
        The document is saved even when nothing changed.
        """
        async with self.write_lock:
            registry = await asyncio.to_thread(self.backend.load)

            record = registry.get(device_id)
            if record is None:
                record = DeviceRecord.model_construct(sensors=[])
                registry[device_id] = record
                logger.info(f"New device registered: {device_id}")

            if sensor_type in record.sensors:
                logger.debug(f"Device {device_id} already reported {sensor_type.value}")
            else:
                record.sensors.append(sensor_type)
                logger.info(f"Device {device_id} reported new sensor type: {sensor_type.value}")

            await asyncio.to_thread(self.backend.save, registry)
            return record

    async def get_devices(self) -> Registry:
        """Return a snapshot of the whole registry."""
        return await asyncio.to_thread(self.backend.load)

    async def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        """Return one device's record, or None if it never reported."""
        registry = await asyncio.to_thread(self.backend.load)
        return registry.get(device_id)
