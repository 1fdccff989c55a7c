"""Domain exceptions for referrals."""

from tollgate.core.exceptions import TollgateException


class ReferralCodeExhaustedError(TollgateException):
    """Raised when no free referral code was found after repeated collisions.

    Signals a code space that is too small for the number of accounts;
    raise ``REFERRAL_CODE_LENGTH``.
    """

    def __init__(self, account_id: int, attempts: int):
        """Create a new ReferralCodeExhaustedError instance."""
        self.account_id = account_id
        self.attempts = attempts
        super().__init__(
            f"No unused referral code for account {account_id} after {attempts} attempts"
        )
