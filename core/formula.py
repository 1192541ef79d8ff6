"""
Water Content Formula

Derives a water content percentage from a NanoVNA return-loss reading
using the calibrated second-order polynomial:

    water_content = 0.0054 * RL^2 - 0.0238 * RL - 12.081

where RL is the return loss in dB (typically negative). The result is
rounded to two decimals, half away from zero.

This module is the only place the polynomial is evaluated. Earlier
deployments carried a cubic variant and a sign-flipped rounding in some
code paths; those were dropped in favour of the quadratic above, which
is also the formula reported to clients in calculation details.
"""

import logging
import math
import numbers
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidInput

logger = logging.getLogger(__name__)

QUADRATIC_COEFFICIENT = 0.0054
LINEAR_COEFFICIENT = -0.0238
CONSTANT_TERM = -12.081

FORMULA = "kadar_air = 0.0054 * return_loss^2 - 0.0238 * return_loss - 12.081"

# Values outside this window are accepted but logged.
TYPICAL_RANGE_DB: Tuple[float, float] = (-60.0, 0.0)

# Largest magnitude whose result still rounds to two decimals in the
# default decimal context.
MAX_RETURN_LOSS_MAGNITUDE = 1e12

_TWO_PLACES = Decimal("0.01")


def round_half_away_from_zero(value: float, places: Decimal = _TWO_PLACES) -> float:
    """
    Round to a fixed number of decimals, ties away from zero.

    The float is converted through its shortest repr so that values such
    as 2.675 round the way they are written rather than the way they are
    stored in binary.
    """
    rounded = Decimal(repr(value)).quantize(places, rounding=ROUND_HALF_UP)
    return float(rounded)


@dataclass(frozen=True)
class ReturnLossCheck:
    """
    Result of validating a return-loss reading.

    Attributes:
        value: The validated reading as a float
        in_typical_range: False when outside TYPICAL_RANGE_DB
        warning: Human-readable note when out of range
    """
    value: float
    in_typical_range: bool
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "in_typical_range": self.in_typical_range,
            "warning": self.warning,
        }


class FormulaEngine:
    """
    Stateless calculator for water content.

    Example:
        engine = FormulaEngine()
        engine.validate(-10.0)
        engine.derive(-10.0)   # -11.3
    """

    def derive(self, return_loss_db: float) -> float:
        """
        Calculate water content percentage from return loss.

        Args:
            return_loss_db: Return loss in dB

        Returns:
            Water content in percent, rounded to two decimals

        Raises:
            InvalidInput: when the result cannot be represented
        """
        rl = float(return_loss_db)
        try:
            raw = QUADRATIC_COEFFICIENT * rl ** 2 + LINEAR_COEFFICIENT * rl + CONSTANT_TERM
            return round_half_away_from_zero(raw)
        except (OverflowError, InvalidOperation) as e:
            raise InvalidInput(f"Return loss {rl} dB is too large to evaluate") from e

    def validate(self, return_loss_db: Any) -> ReturnLossCheck:
        """
        Check that a return-loss reading can be fed to the formula.

        Raises:
            InvalidInput: when the value is missing, boolean, non-numeric,
                NaN, infinite or beyond MAX_RETURN_LOSS_MAGNITUDE
        """
        if isinstance(return_loss_db, bool) or not isinstance(return_loss_db, numbers.Real):
            raise InvalidInput(
                f"Return loss must be a valid number, got {return_loss_db!r}"
            )

        value = float(return_loss_db)
        if not math.isfinite(value):
            raise InvalidInput(f"Return loss must be a valid number, got {value}")
        if abs(value) > MAX_RETURN_LOSS_MAGNITUDE:
            raise InvalidInput(
                f"Return loss {value} dB exceeds {MAX_RETURN_LOSS_MAGNITUDE:g} dB in magnitude"
            )

        low, high = TYPICAL_RANGE_DB
        if low <= value <= high:
            return ReturnLossCheck(value=value, in_typical_range=True)

        warning = f"Return loss {value} dB is outside typical range ({low:g} to {high:g} dB)"
        logger.warning(warning)
        return ReturnLossCheck(value=value, in_typical_range=False, warning=warning)

    def describe(self, return_loss_db: float, water_content_percent: Optional[float] = None) -> Dict[str, str]:
        """Spell out the formula and the substituted calculation."""
        if water_content_percent is None:
            water_content_percent = self.derive(return_loss_db)
        return {
            "formula": FORMULA,
            "raw_calculation": (
                f"0.0054 * {return_loss_db}^2 - 0.0238 * {return_loss_db} - 12.081 "
                f"= {water_content_percent}%"
            ),
        }


def calculate_water_content(return_loss_db: float) -> float:
    """
    Convenience function for one-off calculations.

    Validates the reading first, so non-numeric input raises InvalidInput.
    """
    engine = FormulaEngine()
    check = engine.validate(return_loss_db)
    return engine.derive(check.value)
