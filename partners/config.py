# partners/config.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, Tuple
import logging

logger = logging.getLogger(__name__)

DECIMAL_QUANT = Decimal('0.01')


def quantize_money(value) -> Decimal:
    """Quantize to 2 decimal places (standard monetary precision)"""
    return Decimal(str(value)).quantize(DECIMAL_QUANT, rounding=ROUND_HALF_UP)


class CommissionConfigHelper:
    """
    Commission rule table keyed by level
    Level 1 (the referrer): 60%, Level 2 (referrer's parent): 20%,
    Level 3 (referrer's grandparent): 10%
    """

    COMMISSION_PERCENTAGES = {
        1: Decimal('0.60'),   # 60%
        2: Decimal('0.20'),   # 20%
        3: Decimal('0.10'),   # 10%
    }

    # Deepest payable level; the hierarchy index is not tracked beyond it
    MAX_LEVEL = 3

    @staticmethod
    def get_commission_percentage(level: int) -> Decimal:
        """
        Get commission percentage for a given level, zero outside the table
        """
        if not isinstance(level, int) or isinstance(level, bool):
            logger.warning(f"Invalid commission level {level!r}")
            return Decimal('0')

        return CommissionConfigHelper.COMMISSION_PERCENTAGES.get(level, Decimal('0'))

    @staticmethod
    def calculate_amount(base_amount, level: int) -> Decimal:
        percentage = CommissionConfigHelper.get_commission_percentage(level)
        return quantize_money(Decimal(str(base_amount)) * percentage)

    @staticmethod
    def get_distribution_summary() -> Dict[str, Any]:
        """Get summary of commission distribution across all levels"""
        distribution = {}
        total_percentage = Decimal('0')

        for level in range(1, CommissionConfigHelper.MAX_LEVEL + 1):
            percentage = CommissionConfigHelper.get_commission_percentage(level)
            distribution[level] = {
                'percentage': float(percentage),
                'percentage_display': f"{percentage * 100:.0f}%"
            }
            total_percentage += percentage

        return {
            'distribution': distribution,
            'total_percentage': float(total_percentage),
            'max_level': CommissionConfigHelper.MAX_LEVEL,
        }

    @staticmethod
    def validate_configuration() -> Tuple[bool, str]:
        """Validate that the rule table is mathematically sound"""
        total_percentage = Decimal('0')

        for level in range(1, CommissionConfigHelper.MAX_LEVEL + 1):
            percentage = CommissionConfigHelper.get_commission_percentage(level)
            if percentage < 0:
                return False, f"Negative commission percentage at level {level}"
            total_percentage += percentage

        if total_percentage <= Decimal('0'):
            return False, "Total commission percentage must be positive"

        if total_percentage > Decimal('1'):
            return False, f"Total commission percentage too high: {total_percentage * 100}%"

        return True, (
            f"Commission configuration valid: {total_percentage * 100:.0f}% total "
            f"across {CommissionConfigHelper.MAX_LEVEL} levels"
        )
