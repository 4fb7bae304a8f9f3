"""Translate facade results into HTTP responses."""
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

STATUS_BY_ERROR = {
    "validation": 400,
    "not_found": 404,
    "connectivity": 503,
    "engine": 500,
}


def respond(result: Dict[str, Any]):
    """Pass successes through; turn failures into a non-2xx JSON response."""
    if result.get("success"):
        return result
    status_code = STATUS_BY_ERROR.get(result.get("error"), 500)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))
