"""
Request admission pipeline.

Every request runs through an ordered list of stages before it reaches a
route handler:

    maintenance -> rate limit -> [authentication -> [authorization]]

The bracketed stages are declared per route through an AccessPolicy. Each
stage returns either Continue (with a possibly enriched context) or
Terminate (with the error to send back); the pipeline stops at the first
Terminate.
"""

import enum
from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional, Protocol, Sequence, Tuple, Union

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    MaintenanceError,
    RateLimitError,
    StatusLabException,
)
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector

from ..ratelimit import FixedWindowRateLimiter, RateLimitDecision
from .auth_middleware import ADMIN_ROLE, AuthenticatedIdentity, Authenticator, Authorizer
from .maintenance import MaintenanceGate


class AccessPolicy(str, enum.Enum):
    """Which credential checks a route requires."""

    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


@dataclass(frozen=True)
class AdmissionContext:
    """State accumulated while a request moves through the stages."""

    client_id: str
    policy: AccessPolicy = AccessPolicy.PUBLIC
    rate_limit: Optional[RateLimitDecision] = None
    identity: Optional[AuthenticatedIdentity] = None


@dataclass(frozen=True)
class Continue:
    context: AdmissionContext


@dataclass(frozen=True)
class Terminate:
    error: StatusLabException


Outcome = Union[Continue, Terminate]


class AdmissionStage(Protocol):
    async def __call__(self, request: Request, context: AdmissionContext) -> Outcome:
        ...


class MaintenanceStage:
    def __init__(self, gate: MaintenanceGate):
        self.gate = gate

    async def __call__(self, request: Request, context: AdmissionContext) -> Outcome:
        try:
            self.gate.check()
        except MaintenanceError as exc:
            return Terminate(exc)
        return Continue(context)


class RateLimitStage:
    def __init__(self, rate_limiter: FixedWindowRateLimiter):
        self.rate_limiter = rate_limiter

    async def __call__(self, request: Request, context: AdmissionContext) -> Outcome:
        decision = self.rate_limiter.admit(context.client_id)
        if not decision.allowed:
            return Terminate(RateLimitError(retry_after=decision.retry_after or 0))
        return Continue(replace(context, rate_limit=decision))


class AuthenticationStage:
    def __init__(self, authenticator: Authenticator):
        self.authenticator = authenticator

    async def __call__(self, request: Request, context: AdmissionContext) -> Outcome:
        try:
            identity = self.authenticator.authenticate(request.headers.get("Authorization"))
        except AuthenticationError as exc:
            return Terminate(exc)
        return Continue(replace(context, identity=identity))


class AuthorizationStage:
    def __init__(self, authorizer: Authorizer, required_role: str = ADMIN_ROLE):
        self.authorizer = authorizer
        self.required_role = required_role

    async def __call__(self, request: Request, context: AdmissionContext) -> Outcome:
        if context.identity is None:
            raise RuntimeError("authorization stage reached without an authenticated identity")
        try:
            self.authorizer.authorize(context.identity, self.required_role)
        except AuthorizationError as exc:
            return Terminate(exc)
        return Continue(context)


class AdmissionPipeline:
    """Ordered stages folded over a request context."""

    def __init__(self, stages: Sequence[AdmissionStage]):
        self.stages = list(stages)

    async def admit(self, request: Request, context: AdmissionContext) -> Outcome:
        for stage in self.stages:
            outcome = await stage(request, context)
            if isinstance(outcome, Terminate):
                return outcome
            context = outcome.context
        return Continue(context)


def build_pipelines(
    gate: MaintenanceGate,
    rate_limiter: FixedWindowRateLimiter,
    authenticator: Authenticator,
    authorizer: Authorizer,
) -> Dict[AccessPolicy, AdmissionPipeline]:
    """One pipeline per access policy, sharing the same stage objects."""
    maintenance = MaintenanceStage(gate)
    rate_limit = RateLimitStage(rate_limiter)
    authentication = AuthenticationStage(authenticator)
    authorization = AuthorizationStage(authorizer, ADMIN_ROLE)

    return {
        AccessPolicy.PUBLIC: AdmissionPipeline([maintenance, rate_limit]),
        AccessPolicy.AUTHENTICATED: AdmissionPipeline([maintenance, rate_limit, authentication]),
        AccessPolicy.ADMIN: AdmissionPipeline([maintenance, rate_limit, authentication, authorization]),
    }


class RoutePolicies:
    """Access policy declared for each (method, path template) pair."""

    def __init__(self):
        self._policies: Dict[Tuple[str, str], AccessPolicy] = {}

    def register(self, method: str, path: str, policy: AccessPolicy) -> None:
        self._policies[(method.upper(), path)] = policy

    def lookup(self, method: str, path: str) -> AccessPolicy:
        return self._policies.get((method.upper(), path), AccessPolicy.PUBLIC)

    def resolve(self, request: Request) -> AccessPolicy:
        """Policy of the route that will serve ``request``; PUBLIC when nothing matches."""
        for route in request.app.router.routes:
            match, _ = route.matches(request.scope)
            if match == Match.FULL:
                return self.lookup(request.method, getattr(route, "path", ""))
        return AccessPolicy.PUBLIC


def resolve_client_id(request: Request, trust_proxy_headers: bool = False) -> str:
    """Extract the rate-limit key for a request."""
    if trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

    return request.client.host if request.client else "unknown"


class AdmissionMiddleware(BaseHTTPMiddleware):
    """Runs the admission pipeline in front of every route, matched or not."""

    def __init__(
        self,
        app,
        pipelines: Mapping[AccessPolicy, AdmissionPipeline],
        policies: RoutePolicies,
        trust_proxy_headers: bool = False,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__(app)
        self.pipelines = pipelines
        self.policies = policies
        self.trust_proxy_headers = trust_proxy_headers
        self.metrics = metrics
        self.logger = get_logger("status.admission")

    async def dispatch(self, request: Request, call_next):
        policy = self.policies.resolve(request)
        client_id = resolve_client_id(request, self.trust_proxy_headers)
        set_user_context(client_id=client_id)

        outcome = await self.pipelines[policy].admit(
            request,
            AdmissionContext(client_id=client_id, policy=policy),
        )

        if isinstance(outcome, Terminate):
            self._record_rejection(outcome.error, client_id)
            self.logger.info(
                "Request rejected during admission",
                method=request.method,
                path=request.url.path,
                policy=policy.value,
                status_code=outcome.error.status_code,
                code=outcome.error.code
            )
            return outcome.error.to_json_response()

        context = outcome.context
        request.state.identity = context.identity
        request.state.rate_limit = context.rate_limit
        if context.identity is not None:
            set_user_context(user_id=str(context.identity.id))

        response = await call_next(request)
        if context.rate_limit is not None:
            _set_rate_limit_headers(response, context.rate_limit)
        return response

    def _record_rejection(self, error: StatusLabException, client_id: str) -> None:
        if self.metrics is None:
            return
        if isinstance(error, RateLimitError):
            self.metrics.increment_counter("rate_limit_hits_total", client_id=client_id)
        elif isinstance(error, AuthenticationError):
            self.metrics.increment_counter("auth_failures_total", reason=error.reason)
        elif isinstance(error, AuthorizationError):
            self.metrics.increment_counter(
                "authorization_denials_total",
                required_role=error.details.get("required_role", ADMIN_ROLE)
            )
        elif isinstance(error, MaintenanceError):
            self.metrics.increment_counter("maintenance_rejections_total")


def _set_rate_limit_headers(response, decision: RateLimitDecision) -> None:
    """Propagate rate limiting metadata via standard headers."""
    response.headers["X-RateLimit-Limit"] = str(decision.limit)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
    response.headers["X-RateLimit-Reset"] = str(decision.reset_in_seconds)
