"""HTTP API for shiftpay (FastAPI)."""
