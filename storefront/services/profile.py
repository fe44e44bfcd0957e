import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from storefront.db.documents import DocumentStore
from storefront.schemas.cart import BillingDetails

logger = logging.getLogger(__name__)


def user_path(user_id: str) -> str:
    return f"users/{user_id}"


async def prefill_billing_details(store: DocumentStore, user_id: str, current: BillingDetails = None) -> BillingDetails:
    """Fill name, email and phone from the user profile, keeping values the form already has."""
    current = current or BillingDetails()
    try:
        profile = await store.get(user_path(user_id))
    except SQLAlchemyError as e:
        logger.error(f"Error fetching user data for {user_id}: {str(e)}")
        return current

    if not profile:
        return current

    return current.model_copy(update={
        "full_name": current.full_name or profile.get("name") or "",
        "email": current.email or profile.get("email") or "",
        "phone": current.phone or profile.get("phone") or "",
    })


async def save_billing_details(store: DocumentStore, user_id: str, details: BillingDetails) -> bool:
    """Merge billing details into the user profile. Failures are logged, not raised."""
    try:
        await store.set(
            user_path(user_id),
            {
                "name": details.full_name,
                "email": details.email,
                "phone": details.phone,
                "shipping_address": {
                    "address": details.address,
                    "city": details.city,
                    "pincode": details.pincode,
                },
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
            },
            merge=True
        )
    except SQLAlchemyError as e:
        logger.error(f"Error saving billing details for {user_id}: {str(e)}")
        return False

    logger.info(f"Billing details saved for user {user_id}")
    return True
