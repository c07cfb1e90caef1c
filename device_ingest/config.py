"""Configuration settings for the device ingest service."""

import os

from dotenv import load_dotenv

load_dotenv()

# Server configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Registry document, relative to the working directory unless absolute
DEVICES_FILE = os.getenv("DEVICES_FILE", "devices.json")

# Sound upload configuration
SOUND_FILE_FIELD = "audio"
MAX_SOUND_FILE_BYTES = int(os.getenv("MAX_SOUND_FILE_BYTES", str(10 * 1024 * 1024)))
