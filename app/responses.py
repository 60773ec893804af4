from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.article_service import error_messages
from app.config import settings
from app.schemas import Envelope

NOT_FOUND_MESSAGE = "Failed! no news article found."


def _respond(status_code: int, envelope: Envelope) -> JSONResponse:
    # exclude_none drops the envelope keys that don't apply to this response
    return JSONResponse(status_code=status_code, content=envelope.model_dump(exclude_none=True))


def success(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    return _respond(status_code, Envelope(status="success", error=False, data=data, message=message))


def fail(message: str, status_code: int = 404) -> JSONResponse:
    return _respond(status_code, Envelope(status="fail", error=True, message=message))


def not_found() -> JSONResponse:
    return fail(NOT_FOUND_MESSAGE, status_code=404)


def validation_failed(errors: Dict[str, List[str]]) -> JSONResponse:
    return _respond(
        settings.VALIDATION_STATUS_CODE,
        Envelope(status="fail", error=True, validation_errors=errors),
    )


async def request_validation_failed(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Exception handler keeping FastAPI's own request validation inside the envelope."""
    # A path id that is not an integer can't name an article
    if any(err["loc"] and err["loc"][0] == "path" for err in exc.errors()):
        return not_found()
    return validation_failed(error_messages(exc.errors()))


def install_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_failed)
