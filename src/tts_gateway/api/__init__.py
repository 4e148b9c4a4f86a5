"""
FastAPI REST API Layer for tts-gateway.

This package defines all HTTP endpoints:
    - routes.py: /tts, /voices, /modes, /health, /metrics
    - schemas.py: Response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
