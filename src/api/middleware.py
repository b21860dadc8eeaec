from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

MAINTENANCE_DETAIL = (
    "This application is currently in maintenance mode. Please try again in a few minutes."
)


class MaintenanceModeMiddleware(BaseHTTPMiddleware):
    """
    Answers every request with 503 while maintenance mode is on.

    Lets the database be taken down for maintenance without having the
    service fail in stranger ways.
    """

    def __init__(self, app: ASGIApp, maintenance_mode: bool = False) -> None:
        super().__init__(app)
        self.maintenance_mode = maintenance_mode

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.maintenance_mode:
            return JSONResponse(
                {"detail": MAINTENANCE_DETAIL},
                status_code=503,
            )
        return await call_next(request)
