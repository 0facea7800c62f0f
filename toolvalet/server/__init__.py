"""toolvalet HTTP API (FastAPI)."""
