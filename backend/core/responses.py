from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(message: str, data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    body: dict[str, Any] = {'success': True, 'message': message}
    if data is not None:
        body['data'] = jsonable_encoder(data, by_alias=True)
    return JSONResponse(status_code=status_code, content=body)


def error_response(message: str, status_code: int, error: Any = None) -> JSONResponse:
    body: dict[str, Any] = {'success': False, 'message': message}
    if error is not None:
        body['error'] = jsonable_encoder(error)
    return JSONResponse(status_code=status_code, content=body)
