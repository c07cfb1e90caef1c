"""Device simulator for exercising the device ingest API.

Pretends to be a small fleet of wearables:
- Every device reports motion, heart and sound data
- Each device sends its readings in a random order
- Some readings are repeated to show registration is idempotent
- Requests run concurrently, bounded by a semaphore
"""

import asyncio
import random
import time
from typing import Any, Dict, List, Tuple

import httpx

# Configuration
BASE_URL = "http://localhost:3000"
DEVICE_COUNT = 20
DEVICE_PREFIX = "wearable"
DUPLICATE_RATE = 0.2  # Chance of sending a reading twice
MAX_CONCURRENT_DEVICES = 5
AUDIO_CLIP_BYTES = 4096


def build_motion_payload(device_id: str) -> Dict[str, Any]:
    """Build an accelerometer/gyroscope reading."""
    return {
        "deviceId": device_id,
        "data": {
            "accel": [round(random.uniform(-2.0, 2.0), 3) for _ in range(3)],
            "gyro": [round(random.uniform(-250.0, 250.0), 2) for _ in range(3)],
        },
    }


def build_heart_payload(device_id: str) -> Dict[str, Any]:
    """Build a pulse sensor reading (bpm plus raw IR value)."""
    return {
        "deviceId": device_id,
        "bpm": random.randint(55, 110),
        "ir": random.randint(50_000, 120_000),
    }


def build_sound_upload(device_id: str) -> Tuple[Dict[str, str], Dict[str, Tuple[str, bytes, str]]]:
    """Build the form fields and file part for a short audio clip."""
    clip = bytes(random.getrandbits(8) for _ in range(AUDIO_CLIP_BYTES))
    return {"deviceId": device_id}, {"audio": (f"{device_id}.wav", clip, "audio/wav")}


async def send_reading(client: httpx.AsyncClient, base_url: str, device_id: str, sensor: str) -> bool:
    """Send one reading for a sensor type. Returns True if the API acknowledged it."""
    if sensor == "motion":
        response = await client.post(f"{base_url}/api/motion", json=build_motion_payload(device_id))
    elif sensor == "heart":
        response = await client.post(f"{base_url}/api/heart", json=build_heart_payload(device_id))
    else:
        data, files = build_sound_upload(device_id)
        response = await client.post(f"{base_url}/api/sound", data=data, files=files)

    if response.status_code != 200:
        print(f"\n[DEBUG] {device_id} {sensor}: status {response.status_code}: {response.text[:200]}")
        return False
    return True


async def send_device_readings(
    client: httpx.AsyncClient, base_url: str, device_id: str
) -> Tuple[int, int]:
    """
    Send every sensor type for one device, in random order.

    Returns:
        tuple: (accepted_count, failed_count)
    """
    sensors = ["motion", "heart", "sound"]
    random.shuffle(sensors)
    # Repeat some readings
    sensors += [s for s in sensors if random.random() < DUPLICATE_RATE]

    accepted = 0
    failed = 0
    for sensor in sensors:
        try:
            ok = await send_reading(client, base_url, device_id, sensor)
        except httpx.HTTPError as e:
            print(f"\n[DEBUG] {device_id} {sensor}: {type(e).__name__}: {str(e)[:200]}")
            ok = False
        if ok:
            accepted += 1
        else:
            failed += 1
    return accepted, failed


async def run_simulation(
    client: httpx.AsyncClient,
    base_url: str = BASE_URL,
    device_count: int = DEVICE_COUNT,
) -> Dict[str, Any]:
    """Run the whole fleet and return totals plus the resulting registry."""
    device_ids: List[str] = [f"{DEVICE_PREFIX}-{i:03d}" for i in range(device_count)]
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_DEVICES)

    async def send_with_semaphore(device_id: str) -> Tuple[int, int]:
        async with semaphore:
            return await send_device_readings(client, base_url, device_id)

    results = await asyncio.gather(*(send_with_semaphore(d) for d in device_ids))

    registry_response = await client.get(f"{base_url}/api/devices")
    registry_response.raise_for_status()

    return {
        "devices": device_count,
        "accepted": sum(accepted for accepted, _ in results),
        "failed": sum(failed for _, failed in results),
        "registry": registry_response.json(),
    }


async def main() -> None:
    """Check the API is up, then simulate the fleet and print a summary."""
    timeout = httpx.Timeout(10.0, connect=2.0)

    async with httpx.AsyncClient(timeout=timeout) as client:
        try:
            health_response = await client.get(f"{BASE_URL}/health", timeout=2.0)
            if health_response.status_code != 200:
                print("ERROR: API health check failed!")
                return
        except httpx.HTTPError:
            print(f"ERROR: Cannot connect to API at {BASE_URL}")
            print("Make sure the server is running: python -m device_ingest.main")
            return

        print(f"Simulating {DEVICE_COUNT} devices against {BASE_URL}...")
        start_time = time.time()
        summary = await run_simulation(client)
        elapsed = time.time() - start_time

    complete = [
        device_id
        for device_id, record in summary["registry"].items()
        if set(record["sensors"]) == {"motion", "heart", "sound"}
    ]

    print("=" * 60)
    print("SIMULATION COMPLETE")
    print("=" * 60)
    print(f"Requests accepted: {summary['accepted']}")
    print(f"Requests failed: {summary['failed']}")
    print(f"Devices in registry: {len(summary['registry'])}")
    print(f"Devices with all three sensors: {len(complete)}")
    print(f"Total time: {elapsed:.3f}s")
    print("=" * 60)


if __name__ == "__main__":
    print("Device Ingest Simulator")
    print("=" * 60)
    asyncio.run(main())
