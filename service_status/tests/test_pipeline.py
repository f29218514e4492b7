"""
Unit tests for the admission pipeline.
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, Request

from service_status.app.domain.auth_middleware import AuthenticatedIdentity, Authenticator, Authorizer
from service_status.app.domain.maintenance import MaintenanceGate, MaintenanceState
from service_status.app.domain.pipeline import (
    AccessPolicy,
    AdmissionContext,
    AdmissionPipeline,
    AuthenticationStage,
    AuthorizationStage,
    Continue,
    MaintenanceStage,
    RateLimitStage,
    RoutePolicies,
    Terminate,
    build_pipelines,
    resolve_client_id,
)
from service_status.app.ratelimit import FixedWindowRateLimiter
from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    MaintenanceError,
    RateLimitError,
    ValidationError,
)


def make_request(headers=None, host="127.0.0.1"):
    """Mock FastAPI Request object."""
    request = MagicMock()
    request.headers = headers or {}
    request.client.host = host
    return request


class RecordingStage:
    """Stage that records its invocation and returns a fixed outcome."""

    def __init__(self, name, calls, terminate=False):
        self.name = name
        self.calls = calls
        self.terminate = terminate

    async def __call__(self, request, context):
        self.calls.append(self.name)
        if self.terminate:
            return Terminate(ValidationError(self.name))
        return Continue(context)


class TestAdmissionPipeline:
    """Test cases for AdmissionPipeline."""

    @pytest.fixture
    def context(self):
        return AdmissionContext(client_id="127.0.0.1")

    @pytest.mark.asyncio
    async def test_runs_stages_in_order(self, context):
        """Test every stage runs in declaration order."""
        calls = []
        pipeline = AdmissionPipeline([RecordingStage(name, calls) for name in ("a", "b", "c")])

        outcome = await pipeline.admit(make_request(), context)

        assert isinstance(outcome, Continue)
        assert calls == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_stops_at_first_terminate(self, context):
        """Test no stage runs after a Terminate."""
        calls = []
        pipeline = AdmissionPipeline([
            RecordingStage("a", calls),
            RecordingStage("b", calls, terminate=True),
            RecordingStage("c", calls),
        ])

        outcome = await pipeline.admit(make_request(), context)

        assert isinstance(outcome, Terminate)
        assert outcome.error.message == "b"
        assert calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_context_threads_through_stages(self, context):
        """Test each stage sees the context produced by the previous one."""
        seen = []

        async def tag(request, ctx):
            return Continue(AdmissionContext(client_id=ctx.client_id + "-tagged"))

        async def observe(request, ctx):
            seen.append(ctx.client_id)
            return Continue(ctx)

        outcome = await AdmissionPipeline([tag, observe]).admit(make_request(), context)

        assert seen == ["127.0.0.1-tagged"]
        assert outcome.context.client_id == "127.0.0.1-tagged"

    @pytest.mark.asyncio
    async def test_empty_pipeline_continues(self, context):
        """Test a pipeline without stages admits the request unchanged."""
        outcome = await AdmissionPipeline([]).admit(make_request(), context)

        assert outcome == Continue(context)


class TestStages:
    """Test cases for the individual admission stages."""

    @pytest.fixture
    def context(self):
        return AdmissionContext(client_id="127.0.0.1")

    @pytest.mark.asyncio
    async def test_maintenance_stage(self, context):
        """Test the maintenance stage terminates only while enabled."""
        gate = MaintenanceGate(MaintenanceState())
        stage = MaintenanceStage(gate)

        assert isinstance(await stage(make_request(), context), Continue)

        gate.set_maintenance(True)
        outcome = await stage(make_request(), context)
        assert isinstance(outcome, Terminate)
        assert isinstance(outcome.error, MaintenanceError)

    @pytest.mark.asyncio
    async def test_rate_limit_stage(self, context, fake_clock):
        """Test the rate limit stage attaches the decision and rejects past the limit."""
        stage = RateLimitStage(FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=fake_clock))

        first = await stage(make_request(), context)
        assert first.context.rate_limit.count == 1

        await stage(make_request(), context)
        outcome = await stage(make_request(), context)

        assert isinstance(outcome, Terminate)
        assert isinstance(outcome.error, RateLimitError)
        assert outcome.error.retry_after == 60

    @pytest.mark.asyncio
    async def test_authentication_stage(self, context):
        """Test the authentication stage attaches the identity."""
        identity = AuthenticatedIdentity(id=1, role="admin")
        stage = AuthenticationStage(Authenticator("Bearer valid-token-123", identity))

        outcome = await stage(make_request({"Authorization": "Bearer valid-token-123"}), context)
        assert outcome.context.identity == identity

        outcome = await stage(make_request(), context)
        assert isinstance(outcome, Terminate)
        assert isinstance(outcome.error, AuthenticationError)

    @pytest.mark.asyncio
    async def test_authorization_stage(self, context):
        """Test the authorization stage checks the attached identity."""
        stage = AuthorizationStage(Authorizer(), "admin")

        admin = AdmissionContext(client_id="c", identity=AuthenticatedIdentity(id=1, role="admin"))
        assert isinstance(await stage(make_request(), admin), Continue)

        user = AdmissionContext(client_id="c", identity=AuthenticatedIdentity(id=2, role="user"))
        outcome = await stage(make_request(), user)
        assert isinstance(outcome, Terminate)
        assert isinstance(outcome.error, AuthorizationError)

    @pytest.mark.asyncio
    async def test_authorization_stage_requires_identity(self, context):
        """Test reaching authorization without authentication is a wiring bug."""
        stage = AuthorizationStage(Authorizer(), "admin")

        with pytest.raises(RuntimeError):
            await stage(make_request(), context)


class TestBuildPipelines:
    """Test cases for the per-policy pipelines."""

    @pytest.fixture
    def components(self, fake_clock):
        gate = MaintenanceGate(MaintenanceState())
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=fake_clock)
        authenticator = Authenticator("Bearer valid-token-123", AuthenticatedIdentity(id=1, role="user"))
        return gate, limiter, authenticator, Authorizer()

    def test_stage_lists(self, components):
        """Test each policy gets the right stages in the right order."""
        pipelines = build_pipelines(*components)

        def kinds(policy):
            return [type(stage) for stage in pipelines[policy].stages]

        assert kinds(AccessPolicy.PUBLIC) == [MaintenanceStage, RateLimitStage]
        assert kinds(AccessPolicy.AUTHENTICATED) == [MaintenanceStage, RateLimitStage, AuthenticationStage]
        assert kinds(AccessPolicy.ADMIN) == [
            MaintenanceStage, RateLimitStage, AuthenticationStage, AuthorizationStage,
        ]

    @pytest.mark.asyncio
    async def test_maintenance_runs_before_rate_limit(self, components):
        """Test a maintenance rejection does not consume rate-limit budget."""
        gate, limiter, _, _ = components
        pipelines = build_pipelines(*components)
        context = AdmissionContext(client_id="127.0.0.1")

        gate.set_maintenance(True)
        outcome = await pipelines[AccessPolicy.PUBLIC].admit(make_request(), context)

        assert isinstance(outcome.error, MaintenanceError)
        assert limiter.status("127.0.0.1") is None

    @pytest.mark.asyncio
    async def test_rate_limit_runs_before_authentication(self, components):
        """Test unauthenticated requests still count toward the rate limit."""
        _, limiter, _, _ = components
        pipelines = build_pipelines(*components)
        context = AdmissionContext(client_id="127.0.0.1")

        first = await pipelines[AccessPolicy.AUTHENTICATED].admit(make_request(), context)
        second = await pipelines[AccessPolicy.AUTHENTICATED].admit(make_request(), context)

        assert isinstance(first.error, AuthenticationError)
        assert isinstance(second.error, RateLimitError)
        assert limiter.status("127.0.0.1").count == 2

    @pytest.mark.asyncio
    async def test_admin_pipeline_forbids_non_admin(self, components):
        """Test the admin pipeline authenticates then rejects a non-admin role."""
        pipelines = build_pipelines(*components)
        request = make_request({"Authorization": "Bearer valid-token-123"})

        outcome = await pipelines[AccessPolicy.ADMIN].admit(request, AdmissionContext(client_id="c"))

        assert isinstance(outcome.error, AuthorizationError)


class TestRoutePolicies:
    """Test cases for RoutePolicies."""

    @pytest.fixture
    def policies(self):
        policies = RoutePolicies()
        policies.register("GET", "/api/users/{user_id}", AccessPolicy.AUTHENTICATED)
        policies.register("DELETE", "/api/users/{user_id}", AccessPolicy.ADMIN)
        return policies

    def test_lookup(self, policies):
        """Test exact (method, path) lookups."""
        assert policies.lookup("GET", "/api/users/{user_id}") == AccessPolicy.AUTHENTICATED
        assert policies.lookup("delete", "/api/users/{user_id}") == AccessPolicy.ADMIN

    def test_lookup_unknown_path_is_public(self, policies):
        """Test unregistered paths default to PUBLIC."""
        assert policies.lookup("GET", "/health") == AccessPolicy.PUBLIC

    def test_lookup_unknown_method_is_public(self, policies):
        """Test an unregistered method on a known path is not gated by another method's policy."""
        assert policies.lookup("PATCH", "/api/users/{user_id}") == AccessPolicy.PUBLIC
        assert policies.lookup("HEAD", "/api/users/{user_id}") == AccessPolicy.PUBLIC

    def test_resolve_against_app_routes(self, policies):
        """Test resolution matches the request against the app's route table."""
        app = FastAPI()

        async def endpoint(user_id: str):
            return {}

        app.add_api_route("/api/users/{user_id}", endpoint, methods=["GET"])
        app.add_api_route("/api/users/{user_id}", endpoint, methods=["DELETE"])

        def request_for(method, path):
            return Request({
                "type": "http",
                "method": method,
                "path": path,
                "root_path": "",
                "query_string": b"",
                "headers": [],
                "app": app,
            })

        assert policies.resolve(request_for("GET", "/api/users/7")) == AccessPolicy.AUTHENTICATED
        assert policies.resolve(request_for("DELETE", "/api/users/7")) == AccessPolicy.ADMIN
        assert policies.resolve(request_for("GET", "/nowhere")) == AccessPolicy.PUBLIC
        assert policies.resolve(request_for("PATCH", "/api/users/7")) == AccessPolicy.PUBLIC


class TestResolveClientId:
    """Test cases for client identity extraction."""

    def test_uses_socket_address(self):
        """Test the peer address is the default identity."""
        request = make_request({"X-Forwarded-For": "203.0.113.9"}, host="10.0.0.5")

        assert resolve_client_id(request) == "10.0.0.5"

    def test_trusts_forwarded_headers_when_enabled(self):
        """Test proxy headers are honoured only when trusted."""
        request = make_request({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}, host="10.0.0.5")
        assert resolve_client_id(request, trust_proxy_headers=True) == "203.0.113.9"

        request = make_request({"X-Real-IP": "198.51.100.4"}, host="10.0.0.5")
        assert resolve_client_id(request, trust_proxy_headers=True) == "198.51.100.4"

    def test_unknown_client(self):
        """Test requests without a peer address share one bucket."""
        request = make_request()
        request.client = None

        assert resolve_client_id(request) == "unknown"
