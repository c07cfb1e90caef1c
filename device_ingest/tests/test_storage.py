"""Tests for the device registry storage."""

import asyncio
import itertools
import json
import time

import pytest

from device_ingest.models import DeviceRecord, SensorType
from device_ingest.storage import (
    DeviceRegistry,
    JsonFileBackend,
    MemoryBackend,
    parse_or_default,
    serialize_registry,
)


class SlowBackend(MemoryBackend):
    """Memory backend whose reads take long enough for registrations to overlap."""

    def load(self):
        time.sleep(0.05)
        return super().load()


@pytest.mark.asyncio
async def test_register_new_device():
    """Test that a first registration creates the device record."""
    registry = DeviceRegistry(MemoryBackend())

    record = await registry.register_sensor("d1", SensorType.HEART)

    assert record.sensors == [SensorType.HEART]
    assert await registry.get_devices() == {"d1": DeviceRecord(sensors=[SensorType.HEART])}


@pytest.mark.asyncio
async def test_register_is_idempotent():
    """Test that repeating a registration leaves the document unchanged."""
    backend = MemoryBackend()
    registry = DeviceRegistry(backend)

    await registry.register_sensor("d1", SensorType.MOTION)
    once = backend.document
    await registry.register_sensor("d1", SensorType.MOTION)

    assert backend.document == once
    assert (await registry.get_device("d1")).sensors == [SensorType.MOTION]


@pytest.mark.asyncio
@pytest.mark.parametrize("order", list(itertools.permutations(SensorType)))
async def test_all_sensor_types_any_order(order):
    """Test that every sensor type ends up registered regardless of order."""
    registry = DeviceRegistry(MemoryBackend())

    for sensor_type in order:
        await registry.register_sensor("d1", sensor_type)

    record = await registry.get_device("d1")
    assert set(record.sensors) == set(SensorType)
    assert record.sensors == list(order)


@pytest.mark.asyncio
async def test_devices_are_independent():
    """Test that registrations for one device do not touch another."""
    registry = DeviceRegistry(MemoryBackend())

    await registry.register_sensor("d1", SensorType.MOTION)
    await registry.register_sensor("d2", SensorType.SOUND)

    devices = await registry.get_devices()
    assert devices["d1"].sensors == [SensorType.MOTION]
    assert devices["d2"].sensors == [SensorType.SOUND]


@pytest.mark.asyncio
async def test_concurrent_registrations_are_not_lost():
    """Test that overlapping registrations for one device all survive."""
    registry = DeviceRegistry(SlowBackend())

    await asyncio.gather(
        registry.register_sensor("d1", SensorType.MOTION),
        registry.register_sensor("d1", SensorType.HEART),
        registry.register_sensor("d1", SensorType.SOUND),
    )

    record = await registry.get_device("d1")
    assert set(record.sensors) == set(SensorType)


@pytest.mark.asyncio
async def test_get_unknown_device():
    """Test that an unseen device has no record."""
    registry = DeviceRegistry(MemoryBackend())
    assert await registry.get_device("missing") is None


def test_file_backend_missing_file(tmp_path):
    """Test that a missing document loads as an empty registry."""
    backend = JsonFileBackend(tmp_path / "devices.json")
    assert backend.load() == {}


@pytest.mark.parametrize(
    "document",
    [
        "",
        "not json",
        "[]",
        "null",
        '{"d1": {"sensors": ["temperature"]}}',
        '{"d1": {"sensors": []}}',
        '{"d1": {}}',
    ],
)
def test_file_backend_malformed_document(tmp_path, document):
    """Test that a document with no usable device entry loads as an empty registry."""
    path = tmp_path / "devices.json"
    path.write_text(document)

    assert JsonFileBackend(path).load() == {}


def test_file_backend_save_format(tmp_path):
    """Test that the document is pretty-printed with 2-space indentation."""
    path = tmp_path / "devices.json"
    backend = JsonFileBackend(path)

    backend.save({"d1": DeviceRecord(sensors=[SensorType.MOTION, SensorType.HEART])})

    assert path.read_text() == (
        '{\n  "d1": {\n    "sensors": [\n      "motion",\n      "heart"\n    ]\n  }\n}'
    )
    assert not (tmp_path / "devices.json.tmp").exists()


def test_file_backend_round_trip(tmp_path):
    """Test that saving a loaded registry reproduces the same bytes."""
    path = tmp_path / "devices.json"
    backend = JsonFileBackend(path)
    backend.save(
        {
            "d1": DeviceRecord(sensors=[SensorType.SOUND, SensorType.MOTION]),
            "d2": DeviceRecord(sensors=[SensorType.HEART]),
        }
    )
    first = path.read_text()

    backend.save(backend.load())

    assert path.read_text() == first


def test_file_backend_save_error_propagates(tmp_path):
    """Test that a failed write is not swallowed."""
    backend = JsonFileBackend(tmp_path / "missing-dir" / "devices.json")

    with pytest.raises(OSError):
        backend.save({"d1": DeviceRecord(sensors=[SensorType.HEART])})


def test_parse_or_default_valid_document():
    """Test parsing a well-formed document."""
    registry = parse_or_default(json.dumps({"d1": {"sensors": ["sound", "heart"]}}))
    assert registry == {"d1": DeviceRecord(sensors=[SensorType.SOUND, SensorType.HEART])}


def test_serialize_parse_round_trip():
    """Test that serialized text parses back to the same text."""
    text = serialize_registry({"d1": DeviceRecord(sensors=[SensorType.HEART])})
    assert serialize_registry(parse_or_default(text)) == text


def test_corrupt_registry_is_replaced_on_next_save():
    """Test that a registration over a corrupt document starts fresh."""
    backend = MemoryBackend("{broken")
    registry = DeviceRegistry(backend)

    asyncio.run(registry.register_sensor("d1", SensorType.SOUND))

    assert json.loads(backend.document) == {"d1": {"sensors": ["sound"]}}


def test_invalid_entry_does_not_discard_valid_devices():
    """Test that one bad device entry leaves the other devices loaded."""
    document = json.dumps(
        {
            "d1": {"sensors": ["motion", "heart"]},
            "d2": {"sensors": ["temperature"]},
            "d3": {"sensors": []},
            "d4": "not a record",
        }
    )

    registry = parse_or_default(document)

    assert registry == {"d1": DeviceRecord(sensors=[SensorType.MOTION, SensorType.HEART])}


def test_entry_with_bad_sensors_is_repaired():
    """Test that unknown and repeated sensor types are removed from an entry."""
    document = json.dumps({"d1": {"sensors": ["heart", "temperature", "heart", 7, "sound"]}})

    registry = parse_or_default(document)

    assert registry == {"d1": DeviceRecord(sensors=[SensorType.HEART, SensorType.SOUND])}


@pytest.mark.asyncio
async def test_registration_keeps_valid_devices_from_partly_invalid_document():
    """Test that registering over a partly invalid document keeps the valid devices."""
    backend = MemoryBackend(
        json.dumps({"d1": {"sensors": ["motion", "heart"]}, "d2": {"sensors": ["temperature"]}})
    )
    registry = DeviceRegistry(backend)

    await registry.register_sensor("d3", SensorType.SOUND)

    assert json.loads(backend.document) == {
        "d1": {"sensors": ["motion", "heart"]},
        "d3": {"sensors": ["sound"]},
    }


def test_non_ascii_device_id_written_literally(tmp_path):
    """Test that non-ASCII device identifiers are not escaped in the document."""
    path = tmp_path / "devices.json"
    backend = JsonFileBackend(path)

    backend.save({"gerät-ü": DeviceRecord(sensors=[SensorType.HEART])})

    text = path.read_text(encoding="utf-8")
    assert '"gerät-ü"' in text
    assert "\\u" not in text
    assert backend.load() == {"gerät-ü": DeviceRecord(sensors=[SensorType.HEART])}
