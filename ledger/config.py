# ledger/config.py
from dataclasses import dataclass


class LedgerConfig:
    """
    Fixed amounts (whole rupees) for activation and withdrawals.
    The activation fee is split evenly: one half to the referrer (or back to
    the user when nobody referred them), the other half to the platform.
    """

    ACTIVATION_AMOUNT = 20
    REFERRAL_BONUS = 10
    ADMIN_SHARE = 10

    MIN_WITHDRAWAL = 100
    MAX_WITHDRAWAL = 10000

    MIN_UTR_LENGTH = 12

    @staticmethod
    def split_activation(has_referrer: bool) -> "ActivationSplit":
        """Return who gets what out of one activation fee."""
        if has_referrer:
            return ActivationSplit(
                user_credit=0,
                referrer_bonus=LedgerConfig.REFERRAL_BONUS,
                admin_share=LedgerConfig.ADMIN_SHARE,
            )
        return ActivationSplit(
            user_credit=LedgerConfig.REFERRAL_BONUS,
            referrer_bonus=0,
            admin_share=LedgerConfig.ADMIN_SHARE,
        )


@dataclass(frozen=True)
class ActivationSplit:
    user_credit: int
    referrer_bonus: int
    admin_share: int

    @property
    def total(self) -> int:
        return self.user_credit + self.referrer_bonus + self.admin_share


if LedgerConfig.REFERRAL_BONUS + LedgerConfig.ADMIN_SHARE != LedgerConfig.ACTIVATION_AMOUNT:
    raise ValueError("REFERRAL_BONUS + ADMIN_SHARE must equal ACTIVATION_AMOUNT")
