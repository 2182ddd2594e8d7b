"""
Configuration settings for the ESC-50 prediction monitor.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

# Database configuration
# sqlite:///path/to/file.db for local runs, postgresql://... in production
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///database.db")

# Web application configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3001"))
STREAM_PORT = int(os.getenv("STREAM_PORT", "3002"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,"
        "http://localhost:3001,http://127.0.0.1:3001",
    ).split(",")
    if origin.strip()
]

# Query / broadcast limits
PREDICTIONS_LIMIT = int(os.getenv("PREDICTIONS_LIMIT", "1000"))
BROADCAST_QUEUE_SIZE = int(os.getenv("BROADCAST_QUEUE_SIZE", "100"))  # pending messages per observer

# Simulator configuration
SERVER_URL = os.getenv("SERVER_URL", f"ws://localhost:{STREAM_PORT}")
PUBLISH_INTERVAL = float(os.getenv("PUBLISH_INTERVAL", "2.0"))  # seconds
SIMULATION_MINUTES = float(os.getenv("SIMULATION_MINUTES", "5"))
