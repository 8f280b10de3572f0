"""
Domain errors raised by the banking services.

Each error carries the HTTP status the API layer maps it to.
"""


class BankingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BankingError):
    status_code = 404


class InsufficientFunds(BankingError):
    status_code = 400


class InvalidPayment(BankingError):
    status_code = 400


class ValidationFailed(BankingError):
    status_code = 400


class AccountInUse(BankingError):
    status_code = 409


class PersistenceFailure(BankingError):
    """
    Storage write failed; the surrounding transaction was rolled back.
    """

    status_code = 400
