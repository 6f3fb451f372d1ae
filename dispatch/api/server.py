"""
Intent Dispatch: HTTP API Server
================================

Thin transport over the dispatch pipeline. All decisions happen in the
pipeline; this layer only parses requests and maps errors to status codes.

Endpoints:
- GET  /health
- POST /api/dispatch/route            -> compile + route an intent
- POST /api/dispatch/ingest           -> direct write through the materializer
- POST /api/dispatch/batch            -> batch direct write
- POST /api/dispatch/config           -> toggle audit / auto-switch
- GET  /api/dispatch/stats
- GET  /api/nodes, POST /api/nodes
- POST /api/nodes/{node_id}/heartbeat
- POST /api/nodes/{node_id}/status
- GET  /api/backups

Usage:
    uvicorn dispatch.api.server:app --port 51124
"""

from __future__ import annotations
from contextlib import asynccontextmanager
from typing import List, Optional
import asyncio
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ingestion.contracts import IngestPayload

from ..config import load_config
from ..context import DispatchContext, build_context
from ..contracts import BackendKind, DeploymentZone, NodeConfig, NodeStatus, Provider, Tier
from ..errors import ValidationError
from ..log import configure_logging

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 60.0


# =============================================================================
# REQUEST MODELS
# =============================================================================

class RouteRequest(BaseModel):
    intent: str
    tier: str = Tier.MID.value
    target_path: Optional[str] = None
    zone: Optional[str] = None


class IngestRequest(BaseModel):
    path: str
    content: str
    encoding: str = "utf-8"
    backup: bool = True
    zone: str = DeploymentZone.STAGING.value


class BatchRequest(BaseModel):
    files: List[IngestRequest]


class RouterSettingsRequest(BaseModel):
    enable_audit: Optional[bool] = None
    enable_auto_switch: Optional[bool] = None


class NodeRequest(BaseModel):
    node_id: str
    provider: str
    tier: str
    kind: str = BackendKind.API.value
    capabilities: List[str] = []
    endpoint: Optional[str] = None
    max_tokens: int = 4096


class StatusRequest(BaseModel):
    status: str


def _to_payload(request: IngestRequest) -> IngestPayload:
    try:
        zone = DeploymentZone.parse(request.zone)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return IngestPayload(
        path=request.path,
        content=request.content,
        encoding=request.encoding,
        backup=request.backup,
        zone=zone,
    )


# =============================================================================
# APPLICATION
# =============================================================================

def create_app(context: Optional[DispatchContext] = None) -> FastAPI:
    """
    Build the API application.

    With no context, one is built at startup from load_config().
    """
    state = {'context': context}

    async def sweep_loop(ctx: DispatchContext):
        while True:
            await asyncio.sleep(SWEEP_INTERVAL_SECONDS)
            ctx.registry.sweep_inactive()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = state['context']
        if ctx is None:
            config = load_config()
            configure_logging(config.log)
            ctx = build_context(config)
            state['context'] = ctx
        pruned = await asyncio.to_thread(ctx.materializer.prune_backups)
        logger.info("Dispatch API started (pruned %d expired backup(s))", pruned)

        sweeper = asyncio.create_task(sweep_loop(ctx))
        try:
            yield
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
            await ctx.event_bus.drain()
            logger.info("Dispatch API stopped")

    app = FastAPI(
        title="Intent Dispatch API",
        version="0.1.0",
        description="Routing, auditing and materialization of compiled intents",
        lifespan=lifespan,
    )

    cors_origins = list(context.config.server.cors_origins) if context else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    def current_context() -> DispatchContext:
        current = state['context']
        if current is None:
            raise HTTPException(status_code=503, detail="Dispatch context not initialized")
        return current

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    @app.get("/health")
    async def health_check():
        current = current_context()
        return {
            "status": "online",
            "nodes": len(current.registry),
            "adapters": current.adapters.ids(),
        }

    @app.post("/api/dispatch/route")
    async def route_intent(request: RouteRequest):
        current = current_context()
        try:
            result = await current.dispatch(
                request.intent, request.tier,
                target_path=request.target_path, zone=request.zone,
            )
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        await current.event_bus.drain()
        return result.to_dict()

    @app.post("/api/dispatch/ingest")
    async def ingest(request: IngestRequest):
        current = current_context()
        try:
            result = await current.materializer.ingest(_to_payload(request))
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except OSError as e:
            logger.error("Direct ingest of %s failed: %s", request.path, e)
            raise HTTPException(status_code=500, detail=str(e))
        return result.to_dict()

    @app.post("/api/dispatch/batch")
    async def batch_ingest(request: BatchRequest):
        try:
            payloads = [_to_payload(item) for item in request.files]
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        results = await current_context().materializer.batch_ingest(payloads)
        return {
            "results": [r.to_dict() for r in results],
            "succeeded": sum(1 for r in results if r.ok),
            "total": len(results),
        }

    @app.post("/api/dispatch/config")
    async def update_router_settings(request: RouterSettingsRequest):
        changes = {k: v for k, v in request.model_dump().items() if v is not None}
        config = current_context().orchestrator.update_config(**changes)
        return {"enable_audit": config.enable_audit, "enable_auto_switch": config.enable_auto_switch}

    @app.get("/api/dispatch/stats")
    async def dispatch_stats():
        current = current_context()
        return {
            "router": current.orchestrator.stats(),
            "registry": current.registry.stats().to_dict(),
        }

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    @app.get("/api/nodes")
    async def list_nodes():
        current = current_context()
        return {
            "nodes": [n.to_dict() for n in current.registry.nodes()],
            "stats": current.registry.stats().to_dict(),
        }

    @app.post("/api/nodes")
    async def register_node(request: NodeRequest):
        try:
            config = NodeConfig(
                node_id=request.node_id,
                provider=Provider(request.provider.upper()),
                tier=Tier.parse(request.tier),
                kind=BackendKind(request.kind),
                capabilities=tuple(request.capabilities),
                endpoint=request.endpoint,
                max_tokens=request.max_tokens,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return current_context().registry.register(config).to_dict()

    @app.post("/api/nodes/{node_id}/heartbeat")
    async def heartbeat(node_id: str):
        if not current_context().registry.heartbeat(node_id):
            raise HTTPException(status_code=404, detail=f"Unknown node: {node_id}")
        return {"node_id": node_id, "status": NodeStatus.ACTIVE.value}

    @app.post("/api/nodes/{node_id}/status")
    async def set_status(node_id: str, request: StatusRequest):
        try:
            status = NodeStatus(request.status.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown status: {request.status}")
        if not current_context().registry.set_status(node_id, status):
            raise HTTPException(status_code=404, detail=f"Unknown node: {node_id}")
        return {"node_id": node_id, "status": status.value}

    # -------------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------------

    @app.get("/api/backups")
    async def list_backups():
        entries = await asyncio.to_thread(current_context().materializer.list_backups)
        return {"backups": [e.to_dict() for e in entries]}

    return app


app = create_app()
