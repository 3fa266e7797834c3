"""
Nutrition response normalization.
"""
import logging
import math
from typing import Any, Dict, Optional

from baratie.models import NutritionInfo

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("calories", "protein", "carbs", "fat")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _whole(value: float) -> int:
    return max(0, int(round(value)))


def parse_nutrition(raw: Optional[Dict[str, Any]]) -> Optional[NutritionInfo]:
    """
    Validate a model reply and round it to whole-recipe integer totals.

    Returns None unless calories, protein, carbs and fat are all numeric.
    Fiber defaults to 0.
    """
    if not raw:
        return None

    values = {}
    for name in REQUIRED_FIELDS:
        number = _as_number(raw.get(name))
        if number is None:
            logger.warning(f"Nutrition reply missing numeric '{name}': {raw.get(name)!r}")
            return None
        values[name] = _whole(number)

    fiber = _as_number(raw.get("fiber"))
    values["fiber"] = _whole(fiber) if fiber is not None else 0
    return NutritionInfo(**values)
