from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.catalog_client import CatalogClient, catalog_client
from storefront.core.payment_gateway import RazorpayGateway, payment_gateway
from storefront.db.documents import DocumentStore
from storefront.db.session import get_db
from storefront.services.cart import CartStore
from storefront.services.shopper_session import ShopperSession, ensure_session_id


def get_current_user_id(request: Request) -> str:
    """
    Dependency returning the signed-in user's id from the session.
    The sign-in flow itself lives outside this service.
    """
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please log in to continue checkout."
        )
    return str(user_id)


def get_document_store(db: AsyncSession = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_shopper_session(
    request: Request,
    store: DocumentStore = Depends(get_document_store)
) -> ShopperSession:
    """Cart and checkout state of this browser; only its id travels in the cookie."""
    return ShopperSession(store, ensure_session_id(request.session))


async def get_cart_store(shopper: ShopperSession = Depends(get_shopper_session)) -> CartStore:
    return await shopper.load_cart()


def get_catalog() -> CatalogClient:
    return catalog_client


def get_gateway() -> RazorpayGateway:
    return payment_gateway
