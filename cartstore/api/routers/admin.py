# cartstore/api/routers/admin.py
from fastapi import APIRouter, Depends

from cartstore.api.dependencies import get_cart_service
from cartstore.domain.schemas import CleanupOut
from cartstore.services.cart_service import CartService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/cleanup-expired", response_model=CleanupOut)
def cleanup_expired(svc: CartService = Depends(get_cart_service)):
    """Run the expired-cart sweep now instead of waiting for the scheduler."""
    deleted = svc.cleanup_expired_carts()
    return {"message": "Expired carts cleaned up successfully", "deleted": deleted}
