from app.redemption.discount import DiscountService
from app.redemption.service import RedemptionService

__all__ = [
    "DiscountService",
    "RedemptionService",
]
