from dataclasses import dataclass, field
from typing import List

from config.logger import logger
from models.deal import Deal

DISCOUNT_TOLERANCE = 5
MIN_VALID_DISCOUNT = 50
EXTREME_DISCOUNT = 95


@dataclass
class MathValidation:
    # valid: real discount of at least MIN_VALID_DISCOUNT
    # rejected: the deal cannot go on, not even as a pricing glitch
    valid: bool
    actual_discount: float
    flags: List[str] = field(default_factory=list)
    rejected: bool = False


def validate_discount_math(deal: Deal) -> MathValidation:
    """Recomputes the discount from the prices and checks it against the reported one."""
    flags = []

    if not deal.original_price or deal.original_price <= 0:
        flags.append("No valid original price provided")
        return MathValidation(valid=False, actual_discount=0, flags=flags, rejected=True)

    if deal.current_price <= 0:
        flags.append("Invalid current price")
        return MathValidation(valid=False, actual_discount=0, flags=flags, rejected=True)

    if deal.current_price >= deal.original_price:
        flags.append("Current price is not lower than original price")
        return MathValidation(valid=False, actual_discount=0, flags=flags, rejected=True)

    actual_discount = (deal.original_price - deal.current_price) / deal.original_price * 100
    difference = abs(actual_discount - deal.discount_percentage)

    logger.debug(
        f"📊 Discount check '{deal.title[:40]}': actual {actual_discount:.2f}% "
        f"vs reported {deal.discount_percentage}% (diff {difference:.2f})"
    )

    if difference > DISCOUNT_TOLERANCE:
        flags.append(
            f"Discount mismatch: calculated {actual_discount:.1f}% vs reported {deal.discount_percentage}%"
        )

    if actual_discount > EXTREME_DISCOUNT:
        flags.append("Extremely high discount (>95%) - likely pricing glitch")

    if deal.discount_percentage >= 90 and actual_discount < MIN_VALID_DISCOUNT:
        flags.append("Reported discount much higher than calculated - suspicious")
        return MathValidation(valid=False, actual_discount=actual_discount, flags=flags, rejected=True)

    return MathValidation(
        valid=actual_discount >= MIN_VALID_DISCOUNT,
        actual_discount=actual_discount,
        flags=flags,
    )
