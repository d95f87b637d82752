"""Sync triggers, sync status and cached reference data."""

from fastapi import APIRouter, HTTPException, status

from orderdesk.core.deps import RuntimeDep
from orderdesk.models.enums import ReferenceCollection
from orderdesk.schemas.sync import ConnectivityUpdate

router = APIRouter(tags=["sync"])


@router.post("/sync/orders", response_model=dict)
async def sync_orders(runtime: RuntimeDep):
    """Run an offline-order sync pass, or join the one already running.

    Returns a zero result without contacting the server when offline.
    """
    result = await runtime.order_sync.trigger_sync()
    return {
        "success": True,
        "data": result.model_dump(mode="json"),
    }


@router.get("/sync/orders/status", response_model=dict)
async def order_sync_status(runtime: RuntimeDep):
    return {
        "success": True,
        "data": runtime.order_sync.status.model_dump(mode="json"),
    }


@router.post("/sync/reference-data", response_model=dict)
async def sync_reference_data(runtime: RuntimeDep):
    ok = await runtime.reference_sync.sync_all()
    return {
        "success": True,
        "data": {
            "synced": ok,
            "status": runtime.reference_sync.status.model_dump(mode="json"),
        },
    }


@router.get("/sync/reference-data/status", response_model=dict)
async def reference_sync_status(runtime: RuntimeDep):
    return {
        "success": True,
        "data": runtime.reference_sync.status.model_dump(mode="json"),
    }


@router.get("/reference-data/{collection}", response_model=dict)
async def get_reference_data(collection: ReferenceCollection, runtime: RuntimeDep):
    """Last cached copy of a reference collection, served while offline."""
    cached = await runtime.reference_cache.read(collection)
    if cached is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No cached data for {collection.value}.",
        )
    return {
        "success": True,
        "data": cached.model_dump(mode="json"),
    }


@router.post("/connectivity", response_model=dict)
async def update_connectivity(data: ConnectivityUpdate, runtime: RuntimeDep):
    """Host platform pushes an online/offline event."""
    changed = runtime.connectivity.set_online(data.online)
    return {
        "success": True,
        "data": {"online": runtime.connectivity.is_online(), "changed": changed},
    }
