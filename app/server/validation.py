from typing import Any, Dict, List, Sequence, Type, TypeVar

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

# Type variable for the validated request model
M = TypeVar("M", bound=BaseModel)


class InvalidRequest(Exception):
    """Raised when a request body fails validation; rendered as a 400 response."""

    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__("Invalid request")
        self.errors = errors


def format_errors(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"path": [str(part) for part in error["loc"]], "message": error["msg"]}
        for error in errors
    ]


def validate_body(model: Type[M], body: Any) -> M:
    """
    Validate a raw JSON body against a request model.

    A missing body or one that is not a JSON object fails the same way as a
    bad field.

    Raises:
        InvalidRequest: With one ``{path, message}`` entry per failed field
    """
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise InvalidRequest(format_errors(e.errors(include_url=False))) from e


def invalid_request_response(exc: InvalidRequest) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request", "errors": exc.errors},
    )
