import os
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from tools.errors import LeadCaptureError, StoreConnectionError, StoreError
from tools.messages import get_message
from tools.validation import Problem


def is_development() -> bool:
    return os.getenv("APP_ENV", "production").lower() == "development"


def _envelope(message_obj: Dict[str, str]) -> Dict[str, Any]:
    return {
        "status": message_obj["status"],
        "message": message_obj["message"],
        "code": message_obj["code"],
    }


def success(message_obj: Dict[str, str], data: Any = None, status_code: int = 200) -> JSONResponse:
    content = _envelope(message_obj)
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


def error(message_obj: Dict[str, str], exc: Optional[BaseException] = None, status_code: int = 400) -> JSONResponse:
    """Error envelope. Raw exception detail is only included in development."""
    content = _envelope(message_obj)
    if exc is not None and is_development():
        content["error"] = str(exc)
    return JSONResponse(status_code=status_code, content=content)


def validation_error(problem: Problem) -> JSONResponse:
    return JSONResponse(status_code=400, content=problem.to_dict())


def external_service_error(service: str, exc: Optional[BaseException] = None) -> JSONResponse:
    """502 envelope for a failed upstream call."""
    if service == "Airtable":
        if isinstance(exc, StoreConnectionError):
            message_obj = get_message("EXTERNAL_SERVICE", "AIRTABLE_CONNECTION_ERROR")
        elif isinstance(exc, StoreError):
            message_obj = {"status": "error", "message": exc.message, "code": exc.code}
        else:
            message_obj = get_message("EXTERNAL_SERVICE", "AIRTABLE_ERROR")
    elif isinstance(exc, LeadCaptureError):
        message_obj = {"status": "error", "message": exc.message, "code": exc.code}
    else:
        message_obj = get_message("EXTERNAL_SERVICE", "SERVICE_UNAVAILABLE")

    return error(message_obj, exc, status_code=502)
