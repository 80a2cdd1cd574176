"""Planner client, provider adapters and credential rotation."""

from .credentials import Credential, CredentialPool
from .planner import PlannerClient
from .policy import DEFAULT_TASK_POLICIES, PlannerPolicy, default_policy_for_task
from .providers import (
    MalformedResponseError,
    PlannerError,
    PlannerRateLimitedError,
    PlannerTransportError,
    PlannerUnavailableError,
    ProviderConfig,
    load_provider_config,
)

__all__ = [
    "Credential",
    "CredentialPool",
    "PlannerClient",
    "DEFAULT_TASK_POLICIES",
    "PlannerPolicy",
    "default_policy_for_task",
    "MalformedResponseError",
    "PlannerError",
    "PlannerRateLimitedError",
    "PlannerTransportError",
    "PlannerUnavailableError",
    "ProviderConfig",
    "load_provider_config",
]
