# app/api/responses.py - Success envelope shared by every router
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Wrap a payload as {"success": true, "data": ...}"""
    body = {"success": True, "data": jsonable_encoder(data)}
    if message:
        body["message"] = message
    return body
