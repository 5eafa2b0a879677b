"""
Gate-supplied response headers.

Gates run as dependencies and cannot always reach the final response (for
example a streamed or file response built by the handler). They queue
headers on ``request.state`` and this middleware stamps them on whatever
response goes out, error responses included.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


def queue_response_header(request: Request, name: str, value: str) -> None:
    headers = getattr(request.state, "response_headers", None)
    if headers is None:
        headers = request.state.response_headers = {}
    headers[name] = value


class ResponseHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in (getattr(request.state, "response_headers", None) or {}).items():
            response.headers[name] = value
        return response
