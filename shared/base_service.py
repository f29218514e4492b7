"""
Base service class for HTTP Status Lab services.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type
import time

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import get_config
from shared.errors import NotFoundError, StatusLabException, UnhandledServerError, ValidationError
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: Optional[int] = None, **config_overrides: Any):
        self.service_name = service_name
        self.config = get_config(service_name, port, **config_overrides)
        self.port = self.config.port
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self._setup_components()

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _setup_components(self):
        """Build service collaborators. Override in subclasses."""

    def _service_middleware(self) -> List[Tuple[Type, Dict[str, Any]]]:
        """Middleware that runs inside request timing. Override in subclasses."""
        return []

    def _available_endpoints(self) -> List[str]:
        """Endpoint catalogue returned with 404s. Override in subclasses."""
        return []

    async def _on_startup(self):
        """Startup hook."""

    async def _on_shutdown(self):
        """Shutdown hook."""

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self._on_startup()
            yield
            await self._on_shutdown()

        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"HTTP Status Lab - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
            lifespan=lifespan,
        )

    def _setup_middleware(self):
        """Set up middleware."""

        # Added first so they sit innermost, after request timing
        for middleware_class, options in self._service_middleware():
            self.app.add_middleware(middleware_class, **options)

        @self.app.middleware("http")
        async def add_request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()

            try:
                response = await call_next(request)
            except Exception as e:
                duration = time.time() - start_time
                self.logger.error(
                    "Request failed",
                    method=request.method,
                    path=request.url.path,
                    error=str(e),
                    duration_ms=round(duration * 1000, 2)
                )
                clear_context()
                raise

            duration = time.time() - start_time

            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )

            self.logger.info(
                "HTTP request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            clear_context()

            response.headers["X-Request-ID"] = request_id
            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {
                "status": "healthy",
                "service": self.service_name,
                "uptime_seconds": round(self._get_uptime(), 3),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=self.metrics.render(),
                media_type=self.metrics.content_type
            )

        # Error handlers
        @self.app.exception_handler(StatusLabException)
        async def status_lab_exception_handler(request: Request, exc: StatusLabException):
            """Handle StatusLabException."""
            log = self.logger.error if exc.status_code >= 500 else self.logger.info
            log(
                "Request failed with status error",
                path=request.url.path,
                status_code=exc.status_code,
                code=exc.code,
                message=exc.message
            )
            self.metrics.record_error(exc.code)
            return exc.to_json_response()

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            """Malformed request bodies are client errors, reported as 400."""
            details = {}
            for error in exc.errors():
                location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
                details[location or "body"] = error.get("msg", "Invalid value")
            return ValidationError("Invalid request body", details=details).to_json_response()

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            """Unknown routes and unsupported methods both answer 404."""
            if exc.status_code in (404, 405):
                return NotFoundError(
                    message=f"Route {request.url.path} not found",
                    available_endpoints=self._available_endpoints(),
                ).to_json_response()
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": str(exc.detail), "message": str(exc.detail)},
                headers=getattr(exc, "headers", None)
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            details = {"reason": str(exc)} if self.config.is_development else None
            return UnhandledServerError("Something went wrong!", details=details).to_json_response()

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
