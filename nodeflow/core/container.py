"""Dependency injection container for the engine."""

import httpx
from dependency_injector import containers, providers

from nodeflow.core.config import Settings
from nodeflow.core.cache import CacheService
from nodeflow.services.execution import RetryPolicy, WorkflowRunner
from nodeflow.services.node_executor import build_executor_registry


class Container(containers.DeclarativeContainer):
    """Engine dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Step result cache (uses Redis when enabled, memory otherwise)
    cache = providers.Singleton(
        CacheService,
        settings=settings
    )

    # Shared outbound HTTP client
    http_client = providers.Singleton(
        httpx.AsyncClient,
        timeout=settings.provided.http_timeout
    )

    executors = providers.Singleton(
        build_executor_registry,
        settings=settings,
        http_client=http_client
    )

    retry_policy = providers.Factory(
        RetryPolicy.from_settings,
        settings=settings
    )

    workflow_runner = providers.Factory(
        WorkflowRunner,
        cache=cache,
        executors=executors,
        retry_policy=retry_policy
    )
