"""Standard JSON response envelope."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        {"status": "success", "statusCode": status_code, "data": jsonable_encoder(data)},
        status_code=status_code,
    )


def error(message: str, status_code: int = 500, detail: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"status": "error", "statusCode": status_code, "message": message}
    if detail is not None:
        body["error"] = jsonable_encoder(detail)
    return JSONResponse(body, status_code=status_code)
