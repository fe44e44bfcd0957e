"""
Per-browser shopping state kept in the document store.

The session cookie carries only an opaque session id. The cart lives under
``carts/{sid}`` and the checkout progress under ``checkouts/{sid}``, so
neither is bounded by what a browser accepts as a cookie.
"""
import logging
import uuid
from typing import Any, Dict, MutableMapping

from pydantic import ValidationError

from storefront.db.documents import DocumentStore
from storefront.schemas.checkout import CheckoutContext
from storefront.services.cart import CartStore

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "sid"


def ensure_session_id(session: MutableMapping[str, Any]) -> str:
    """Session id of this browser, minted on first use."""
    session_id = session.get(SESSION_ID_KEY)
    if not session_id:
        session_id = uuid.uuid4().hex
        session[SESSION_ID_KEY] = session_id
        logger.info(f"New shopper session: {session_id}")
    return session_id


class ShopperSession:
    def __init__(self, store: DocumentStore, session_id: str):
        self.store = store
        self.session_id = session_id
        self._cart_storage: Dict[str, Any] = {}
        self._cart_snapshot: Dict[str, Any] = {}

    @property
    def cart_path(self) -> str:
        return f"carts/{self.session_id}"

    @property
    def checkout_path(self) -> str:
        return f"checkouts/{self.session_id}"

    async def load_cart(self) -> CartStore:
        self._cart_storage = await self.store.get(self.cart_path) or {}
        self._cart_snapshot = dict(self._cart_storage)
        return CartStore(self._cart_storage)

    async def save_cart(self) -> bool:
        """Write the cart back when a mutation changed it; returns whether it did."""
        if self._cart_storage == self._cart_snapshot:
            return False
        await self.store.set(self.cart_path, self._cart_storage)
        self._cart_snapshot = dict(self._cart_storage)
        return True

    async def load_checkout(self) -> CheckoutContext:
        raw = await self.store.get(self.checkout_path)
        if not raw:
            return CheckoutContext()
        try:
            return CheckoutContext.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable checkout state for {self.session_id}: {str(e)}")
            return CheckoutContext()

    async def save_checkout(self, context: CheckoutContext) -> None:
        await self.store.set(self.checkout_path, context.model_dump(mode="json", by_alias=True))
