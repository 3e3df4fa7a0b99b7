"""Error taxonomy shared by the upload pipelines.

Every error carries the HTTP status it maps to and the pipeline stage that
raised it, so routers and metrics never need to know concrete types.
"""

from typing import Optional


class TubelyError(Exception):
    """Base exception for request-level failures."""

    status_code: int = 500
    stage: str = "unknown"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return self.message


class ClientError(TubelyError):
    """Bad input from the caller."""

    status_code = 400


class AuthenticationError(ClientError):
    """Missing or invalid credentials."""

    status_code = 401
    stage = "auth"


class AuthorizationError(ClientError):
    """Caller is authenticated but may not act on the resource."""

    status_code = 403
    stage = "auth"


class NotFoundError(TubelyError):
    """Requested resource does not exist."""

    status_code = 404
    stage = "lookup"


class DependencyError(TubelyError):
    """Failure of scratch storage, media tools, object store or record store."""

    status_code = 500
