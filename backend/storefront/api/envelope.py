"""The JSON shape every API response uses: {"success", "message", "data"}."""

from fastapi.responses import JSONResponse


def send_response(success: bool, message: str, data=None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": success, "message": message, "data": data},
    )
