from __future__ import annotations

from typing import Any

from fastapi.responses import ORJSONResponse


def success_response(data: Any, message: str, status_code: int = 200) -> ORJSONResponse:
    """Success envelope: ``{"success": true, "data": ..., "message": ...}``."""
    return ORJSONResponse(
        content={"success": True, "data": data, "message": message},
        status_code=status_code,
    )
