"""
Domain utilities for the Status Lab service.

Includes the admission pipeline stages and the user service that do not
belong to adapters or transport-specific layers.
"""

from .auth_middleware import AuthenticatedIdentity, Authenticator, Authorizer
from .maintenance import MaintenanceGate, MaintenanceState
from .pipeline import AccessPolicy, AdmissionMiddleware, AdmissionPipeline, RoutePolicies, build_pipelines
from .users import UserPayload, UserService

__all__ = [
    "AccessPolicy",
    "AdmissionMiddleware",
    "AdmissionPipeline",
    "AuthenticatedIdentity",
    "Authenticator",
    "Authorizer",
    "MaintenanceGate",
    "MaintenanceState",
    "RoutePolicies",
    "UserPayload",
    "UserService",
    "build_pipelines",
]
