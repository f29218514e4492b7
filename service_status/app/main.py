"""
Status Lab service: a user directory whose routes each demonstrate one
HTTP status code.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from fastapi import Body, FastAPI, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.errors import UnhandledServerError

from .adapters import UpstreamSimulator, UserDirectory
from .domain import (
    AccessPolicy,
    AdmissionMiddleware,
    AuthenticatedIdentity,
    Authenticator,
    Authorizer,
    MaintenanceGate,
    MaintenanceState,
    RoutePolicies,
    UserPayload,
    UserService,
    build_pipelines,
)
from .ratelimit import Clock, FixedWindowRateLimiter


CONFIG_ETAG = '"config-v1.0"'
CONFIG_DATA = {"version": "1.0", "features": ["users", "auth"]}

ENDPOINTS: List[Tuple[str, str, str]] = [
    ("GET", "/health", "Health check (no auth)"),
    ("GET", "/api/users", "Get all users"),
    ("GET", "/api/users/:id", "Get user by ID"),
    ("POST", "/api/users", "Create user (admin only)"),
    ("PUT", "/api/users/:id", "Update user"),
    ("DELETE", "/api/users/:id", "Delete user (admin only)"),
    ("GET", "/users", "Moved permanently to /api/users"),
    ("GET", "/login", "Temporarily redirected to /auth/login"),
    ("GET", "/api/static/config", "Conditional GET with ETag"),
    ("GET", "/api/error/server", "Trigger 500 error"),
    ("GET", "/api/external/data", "Trigger 502 error"),
    ("GET", "/api/slow/operation", "Trigger 504 error"),
    ("POST", "/admin/maintenance", "Toggle maintenance mode (admin only)"),
]


class MaintenanceToggle(BaseModel):
    enabled: Optional[bool] = None


class StatusService(BaseService):
    """Status Lab service implementation."""

    def __init__(
        self,
        port: Optional[int] = None,
        clock: Optional[Clock] = None,
        directory: Optional[UserDirectory] = None,
        **config_overrides: Any
    ):
        self._clock = clock
        self._directory = directory
        super().__init__("status", port, **config_overrides)

        self._setup_user_routes()
        self._setup_redirect_routes()
        self._setup_demo_routes()
        self._setup_admin_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.status_service = self

    def _setup_components(self):
        self.rate_limiter = FixedWindowRateLimiter(
            max_requests=self.config.rate_limit_max_requests,
            window_seconds=self.config.rate_limit_window_seconds,
            clock=self._clock,
        )
        self.maintenance = MaintenanceState()
        self.maintenance_gate = MaintenanceGate(
            self.maintenance,
            retry_after_seconds=self.config.maintenance_retry_after_seconds,
        )
        self.authenticator = Authenticator(
            self.config.accepted_credential,
            AuthenticatedIdentity(id=self.config.identity_id, role=self.config.identity_role),
        )
        self.authorizer = Authorizer()
        self.users = UserService(self._directory if self._directory is not None else UserDirectory())
        self.upstream = UpstreamSimulator(
            timeout_seconds=self.config.upstream_timeout_seconds,
            operation_seconds=self.config.slow_operation_seconds,
        )
        self.route_policies = RoutePolicies()
        self.pipelines = build_pipelines(
            self.maintenance_gate,
            self.rate_limiter,
            self.authenticator,
            self.authorizer,
        )

    def _service_middleware(self) -> List[Tuple[Type, Dict[str, Any]]]:
        return [
            (AdmissionMiddleware, {
                "pipelines": self.pipelines,
                "policies": self.route_policies,
                "trust_proxy_headers": self.config.trust_proxy_headers,
                "metrics": self.metrics,
            }),
        ]

    def _available_endpoints(self) -> List[str]:
        return [f"{method} {path}" for method, path, _ in ENDPOINTS]

    async def _on_startup(self):
        self.logger.info(
            "Status service started",
            url=f"http://{self.config.host}:{self.config.port}",
            authentication=f'Add header "Authorization: {self.config.accepted_credential}"',
            endpoints=[f"{method:<6} {path:<26} - {description}" for method, path, description in ENDPOINTS],
        )

    def _route(
        self,
        method: str,
        path: str,
        policy: AccessPolicy = AccessPolicy.PUBLIC,
        **kwargs: Any
    ) -> Callable[[Callable], Callable]:
        """Register a route together with the access policy it requires."""

        def decorator(endpoint: Callable) -> Callable:
            self.app.add_api_route(path, endpoint, methods=[method], **kwargs)
            self.route_policies.register(method, path, policy)
            return endpoint

        return decorator

    def _setup_user_routes(self):
        """Set up the user directory routes."""

        @self._route("GET", "/api/users", AccessPolicy.AUTHENTICATED)
        async def list_users():
            """200 OK with every user."""
            return {
                "success": True,
                "data": [user.to_dict() for user in self.users.list_users()],
            }

        @self._route("GET", "/api/users/{user_id}", AccessPolicy.AUTHENTICATED)
        async def get_user(user_id: str):
            """200 OK, or 404 when the id is unknown."""
            user = self.users.get_user(user_id)
            return {"success": True, "data": user.to_dict()}

        @self._route("POST", "/api/users", AccessPolicy.ADMIN, status_code=201)
        async def create_user(payload: Optional[UserPayload] = Body(default=None)):
            """201 Created, or 400 on missing or malformed fields."""
            user = self.users.create_user(payload)
            return {
                "success": True,
                "message": "User created successfully",
                "data": user.to_dict(),
            }

        @self._route("PUT", "/api/users/{user_id}", AccessPolicy.AUTHENTICATED)
        async def update_user(user_id: str, payload: Optional[UserPayload] = Body(default=None)):
            """200 OK with the merged record, or 404."""
            user = self.users.update_user(user_id, payload)
            return {
                "success": True,
                "message": "User updated successfully",
                "data": user.to_dict(),
            }

        @self._route("DELETE", "/api/users/{user_id}", AccessPolicy.ADMIN)
        async def delete_user(user_id: str):
            """204 No Content, or 404."""
            self.users.delete_user(user_id)
            return Response(status_code=204)

    def _setup_redirect_routes(self):
        """Set up the 301 / 302 routes."""

        @self._route("GET", "/users")
        async def legacy_users():
            return RedirectResponse(url="/api/users", status_code=301)

        @self._route("GET", "/login")
        async def login():
            return RedirectResponse(url="/auth/login", status_code=302)

    def _setup_demo_routes(self):
        """Set up the conditional GET and server-side failure demos."""

        @self._route("GET", "/api/static/config")
        async def static_config(request: Request):
            """200 with an ETag, or 304 when the client already has it."""
            if request.headers.get("If-None-Match") == CONFIG_ETAG:
                return Response(status_code=304, headers={"ETag": CONFIG_ETAG})
            return JSONResponse(content=CONFIG_DATA, headers={"ETag": CONFIG_ETAG})

        @self._route("GET", "/api/error/server")
        async def server_error():
            """Always 500."""
            try:
                raise ConnectionError("Database connection failed")
            except ConnectionError as exc:
                details = {"reason": str(exc)} if self.config.is_development else None
                raise UnhandledServerError(details=details) from exc

        @self._route("GET", "/api/external/data")
        async def external_data():
            """Always 502: the simulated upstream never answers correctly."""
            payload = await self.upstream.fetch_external_data()
            return {"success": True, "data": payload["data"]}

        @self._route("GET", "/api/slow/operation")
        async def slow_operation():
            """504 unless the operation beats the gateway timeout."""
            data = await self.upstream.slow_operation()
            return {"success": True, "data": data}

    def _setup_admin_routes(self):
        """Set up admin-only routes."""

        @self._route("POST", "/admin/maintenance", AccessPolicy.ADMIN)
        async def toggle_maintenance(request: Request, payload: Optional[MaintenanceToggle] = Body(default=None)):
            """Switch maintenance mode on or off for the whole process."""
            enabled = bool(payload.enabled) if payload is not None else False
            self.maintenance_gate.set_maintenance(enabled)
            identity = request.state.identity
            self.logger.info(
                "Maintenance toggled",
                enabled=enabled,
                requested_by=identity.id if identity else None
            )
            return {
                "success": True,
                "message": f"Maintenance mode {'enabled' if enabled else 'disabled'}",
                "maintenance": enabled,
            }


def create_app(**kwargs: Any) -> FastAPI:
    """Create FastAPI application."""
    service = StatusService(**kwargs)
    return service.app


def main():
    """Run the service with uvicorn."""
    service = StatusService()
    service.run()


if __name__ == "__main__":
    main()
