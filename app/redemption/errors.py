class RedemptionError(Exception):
    pass


class CodeNotFoundError(RedemptionError):
    pass


class CodeAlreadyConsumedOrVoidError(RedemptionError):
    pass


class CodeExpiredError(RedemptionError):
    pass


class CodeEmailMismatchError(RedemptionError):
    pass


class CodeSpaceExhaustedError(RedemptionError):
    pass


class InvalidOrExpiredTokenError(RedemptionError):
    pass


class PaymentSessionInvalidError(RedemptionError):
    pass
