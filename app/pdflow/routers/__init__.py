"""
Routers package for FastAPI endpoints.

Organized by domain:
- upload: PDF upload and session creation
- process: Starting, resuming and polling page processing
- outputs: Output file retrieval
- settings: Model API key status and checks
"""

from . import outputs, process, settings, upload

__all__ = ["outputs", "process", "settings", "upload"]
