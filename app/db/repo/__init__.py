from app.db.repo.confirmation_codes_repo import ConfirmationCodesRepo
from app.db.repo.discount_codes_repo import DiscountCodesRepo
