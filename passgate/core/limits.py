# passgate/core/limits.py
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Recusa corpos acima do teto antes de qualquer parsing (413)."""

    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        if request.method not in {"POST", "PUT", "PATCH"}:
            return await call_next(request)

        length = request.headers.get("content-length")
        if length is None:
            if "chunked" in request.headers.get("transfer-encoding", "").lower():
                return JSONResponse(status_code=411, content={"code": "LENGTH_REQUIRED", "message": "Content-Length required."})
            return await call_next(request)
        if not length.isdigit():
            return JSONResponse(status_code=400, content={"code": "MALFORMED_REQUEST", "message": "Malformed request."})
        if int(length) > self.max_bytes:
            return JSONResponse(status_code=413, content={"code": "PAYLOAD_TOO_LARGE", "message": "Payload too large."})
        return await call_next(request)
