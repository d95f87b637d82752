"""Order submission and offline-order management endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import Response

from orderdesk.core.deps import RuntimeDep
from orderdesk.core.exceptions import OfflineOrderNotFound, StorageUnavailable
from orderdesk.schemas.order import OrderPayload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


@router.post("/orders/submit", response_model=dict)
async def submit_order(data: OrderPayload, runtime: RuntimeDep):
    """Submit a finalized order.

    Goes straight to the order server when online; otherwise the order is
    staged on this device under an ``OFF-`` code and delivered by the next
    sync pass. The response has the same shape either way.
    """
    result = await runtime.submission.submit_order(data)
    try:
        await runtime.reference_cache.upsert_order(
            {**data.to_wire(), "orderCode": result.order_code, "isOffline": result.is_offline}
        )
    except StorageUnavailable as exc:
        logger.warning("Cached order list not updated for %s: %s", result.order_code, exc)
    return {
        "success": True,
        "data": result.model_dump(mode="json"),
    }


@router.get("/offline-orders", response_model=dict)
async def list_offline_orders(
    runtime: RuntimeDep,
    pending: bool = Query(False, description="Only orders whose e-mails are not confirmed"),
    unsynced: bool = Query(False, description="Only orders the server does not have yet"),
):
    if unsynced:
        orders = await runtime.repository.get_unsynced()
    elif pending:
        orders = await runtime.repository.get_pending_email()
    else:
        orders = await runtime.repository.get_all()
    return {
        "success": True,
        "data": [o.model_dump(mode="json") for o in orders],
        "meta": {"total": len(orders)},
    }


@router.delete("/offline-orders", response_model=dict)
async def clear_synced_offline_orders(runtime: RuntimeDep):
    """Remove every order the server already has."""
    removed = await runtime.repository.clear_synced()
    return {
        "success": True,
        "data": {"removed": removed},
    }


@router.get("/offline-orders/{order_id}", response_model=dict)
async def get_offline_order(order_id: str, runtime: RuntimeDep):
    offline_order = await runtime.repository.get_by_id(order_id)
    if offline_order is None:
        raise OfflineOrderNotFound(order_id)
    return {
        "success": True,
        "data": offline_order.model_dump(mode="json"),
    }


@router.get("/offline-orders/{order_id}/document")
async def download_offline_document(order_id: str, runtime: RuntimeDep):
    """Download the receipt rendered on the device at submission time."""
    offline_order = await runtime.repository.get_by_id(order_id)
    if offline_order is None:
        raise OfflineOrderNotFound(order_id)
    if offline_order.document_snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No document was rendered for this order.",
        )
    return Response(
        content=offline_order.document_snapshot,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{order_id}.pdf"'},
    )


@router.post("/offline-orders/{order_id}/resend-email", response_model=dict)
async def resend_offline_order_email(order_id: str, runtime: RuntimeDep):
    emails_sent = await runtime.order_sync.resend_email(order_id)
    offline_order = await runtime.repository.get_by_id(order_id)
    return {
        "success": True,
        "data": {
            "emails_sent": emails_sent,
            "order": offline_order.model_dump(mode="json") if offline_order else None,
        },
    }


@router.delete("/offline-orders/{order_id}", response_model=dict)
async def delete_offline_order(order_id: str, runtime: RuntimeDep):
    deleted = await runtime.repository.delete(order_id)
    if not deleted:
        raise OfflineOrderNotFound(order_id)
    return {
        "success": True,
        "data": {"id": order_id, "deleted": True},
    }
