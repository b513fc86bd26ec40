"""Gateway error taxonomy

Every error the forwarding pipeline can raise derives from ``GatewayError``
and knows how to render itself as a JSON response, so the boundary never has
to guess a status code.
"""
from typing import Optional

from fastapi.responses import JSONResponse, Response

from app.core.cors import CORS_HEADERS


class GatewayError(Exception):
    """Base class for errors surfaced to gateway clients"""

    status_code: int = 500
    error: str = "Internal error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> Response:
        return JSONResponse(
            content={'error': self.error, 'message': self.message},
            status_code=self.status_code,
            headers=CORS_HEADERS,
        )


class ValidationError(GatewayError):
    """Raised for a malformed provider registration or an unknown strategy"""

    status_code = 400
    error = "Validation error"


class AuthError(GatewayError):
    """Raised when no usable client credential is present"""

    status_code = 401
    error = "Unauthorized"


class ClientInputError(GatewayError):
    """Raised for a malformed client request body"""

    status_code = 400
    error = "Bad request"


class UpstreamError(GatewayError):
    """Raised when an upstream reply cannot be interpreted

    The raw upstream text is relayed with the upstream's own status code.
    """

    error = "Upstream error"

    def __init__(self, status_code: int, body: str):
        self.body = body
        super().__init__(f"Unparsable upstream response (HTTP {status_code})", status_code)

    def to_response(self) -> Response:
        return Response(
            content=self.body,
            status_code=self.status_code,
            headers=CORS_HEADERS,
            media_type='text/plain',
        )


class ProxyError(GatewayError):
    """Raised for unexpected failures in the forwarding pipeline"""

    status_code = 500
    error = "Proxy error"
