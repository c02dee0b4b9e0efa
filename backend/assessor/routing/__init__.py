"""Model routing: provider gateway, retry policy and the model router."""

from assessor.routing.gateway import GatewayError, GatewayResponse, GatewayTimeout, ModelGateway, OpenRouterGateway
from assessor.routing.retry import AttemptOutcome, RetryDecision, RetryPolicy, RetryState, RouterAction
from assessor.routing.router import CallContext, ModelRouter

__all__ = [
    "AttemptOutcome",
    "CallContext",
    "GatewayError",
    "GatewayResponse",
    "GatewayTimeout",
    "ModelGateway",
    "ModelRouter",
    "OpenRouterGateway",
    "RetryDecision",
    "RetryPolicy",
    "RetryState",
    "RouterAction",
]
