from app.db.models.confirmation_codes import ConfirmationCode
from app.db.models.discount_codes import DiscountCode

__all__ = [
    "ConfirmationCode",
    "DiscountCode",
]
