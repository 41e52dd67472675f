"""Request-time application routing inbound hosts to tenants.

Every request passes through the host classifier:

- platform hosts reach the platform's own handlers (``/health``)
- tenant hosts are answered with their dispatch target
- unresolved hosts get a 404

Executing tenant code is the dispatch namespace's job, not this app's.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog
from aiohttp import web

from hostplane.domains.classifier import HostClass, HostnameClassifier, Resolution
from hostplane.registry.store import Tenant, TenantStore

logger = structlog.get_logger()

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@dataclass
class InitState:
    """Whether the registry has been prepared for this process."""

    initialized: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass
class AppContext:
    store: TenantStore
    classifier: HostnameClassifier
    namespace_name: str
    init_state: InitState = field(default_factory=InitState)


CONTEXT_KEY = web.AppKey("hostplane_context", AppContext)
RESOLUTION_KEY = web.RequestKey("hostplane_resolution", Resolution)


def parse_bind(bind: str) -> tuple[str, int]:
    """Parse bind address into host and port.

    Examples:
        >>> parse_bind("127.0.0.1:9000")
        ('127.0.0.1', 9000)
        >>> parse_bind("8080")
        ('0.0.0.0', 8080)
    """
    if ":" in bind:
        host, port = bind.rsplit(":", 1)
        return host, int(port)
    return "0.0.0.0", int(bind)


@web.middleware
async def host_routing_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    context = request.app[CONTEXT_KEY]
    resolution = await context.classifier.resolve(request.host or "")
    request[RESOLUTION_KEY] = resolution

    if resolution.host_class == HostClass.PLATFORM:
        return await handler(request)

    if resolution.tenant is None:
        return web.json_response({"error": "Unknown host", "host": resolution.host}, status=404)

    return await handle_tenant(request, resolution.tenant, resolution, context)


async def handle_tenant(
    request: web.Request, tenant: Tenant, resolution: Resolution, context: AppContext
) -> web.Response:
    """Answer with where the tenant's request would be dispatched."""
    logger.debug(
        "Tenant request",
        host=resolution.host,
        tenant_id=tenant.id,
        host_class=resolution.host_class.value,
    )
    return web.json_response(
        {
            "tenant_id": tenant.id,
            "host": resolution.host,
            "host_class": resolution.host_class.value,
            "dispatch": {"namespace": context.namespace_name, "script": tenant.id},
            "path": request.path,
        }
    )


async def handle_health(request: web.Request) -> web.Response:
    """Health check endpoint."""
    init_state = request.app[CONTEXT_KEY].init_state
    if not init_state.initialized:
        return web.json_response({"status": "initializing", "errors": init_state.errors}, status=503)
    return web.json_response({"status": "healthy"})


async def _initialize_registry(app: web.Application) -> None:
    context = app[CONTEXT_KEY]
    if context.init_state.initialized:
        return
    try:
        await context.store.initialize()
    except OSError as e:
        logger.error("Could not initialize tenant registry", path=str(context.store.storage_path), error=str(e))
        context.init_state.errors.append(str(e))
        return
    context.init_state.initialized = True
    logger.info("Tenant registry ready", path=str(context.store.storage_path))


def create_app(
    store: TenantStore,
    classifier: HostnameClassifier,
    namespace_name: str,
    init_state: InitState | None = None,
) -> web.Application:
    """Build the request-time application.

    Args:
        store: Tenant registry, initialized on startup.
        classifier: Host classifier backed by the same registry.
        namespace_name: Dispatch namespace holding tenant scripts.
        init_state: Shared initialization state; a fresh one by default.
    """
    app = web.Application(middlewares=[host_routing_middleware])
    app[CONTEXT_KEY] = AppContext(
        store=store,
        classifier=classifier,
        namespace_name=namespace_name,
        init_state=init_state or InitState(),
    )
    app.router.add_get("/health", handle_health)
    app.on_startup.append(_initialize_registry)
    return app
