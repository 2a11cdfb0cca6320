"""
Carbon footprint calculation, emission levels and green-point rewards
"""

from decimal import Decimal, ROUND_HALF_UP

import numpy as np

HABIT_CATEGORIES = ('transport', 'energy', 'diet', 'waste', 'water', 'other')

# Emission factors for the footprint calculator (kg CO2 per unit)
EMISSION_FACTORS = {
    'transportation': {
        'carKm': 2.3,
        'busKm': 0.1,
        'trainKm': 0.04,
        'planeKm': 0.25
    },
    'home': {
        'electricityKwh': 0.5,
        'gasKwh': 0.2,
        'oilLiters': 0.25
    },
    'food': {
        'meatMeals': 6.0,
        'vegetarianMeals': 1.5,
        'veganMeals': 1.0
    }
}

# Comparison constants
TREE_ABSORPTION_KG = 21     # one tree absorbs ~21kg CO2 per year
FLIGHT_EMISSION_KG = 500    # one flight emits ~500kg CO2
CAR_KG_PER_KM = 2.3

# Category mapping for weekly emission levels
CATEGORY_MAPPING = {
    1: {"level": "very_low", "label": "Very Low (Ideal)", "emoji": "🌿"},
    2: {"level": "low", "label": "Low (Sustainable)", "emoji": "🟢"},
    3: {"level": "moderate", "label": "Moderate (Fairly good)", "emoji": "🟡"},
    4: {"level": "high", "label": "High (Needs improvement)", "emoji": "🟠"},
    5: {"level": "very_high", "label": "Very High (Requires attention)", "emoji": "🔴"}
}

# Rewards for completing a habit
COMPLETION_POINTS = 10
COMPLETION_SCORE = 2
MAX_SUSTAINABILITY_SCORE = 100

# Badge awarded when the number of completed habits reaches the key
BADGE_MILESTONES = {
    1: "First Step",
    5: "Eco Starter",
    10: "Green Habit Builder",
    25: "Eco Warrior",
    50: "Planet Champion"
}


class InvalidFootprintInput(ValueError):
    """Raised when a calculator field is negative or not a number"""


def _read_quantity(section, field, value):
    if value is None or value == '':
        return 0.0
    if isinstance(value, bool):
        raise InvalidFootprintInput(f"{section}.{field} must be a number")
    try:
        quantity = float(value)
    except (TypeError, ValueError):
        raise InvalidFootprintInput(f"{section}.{field} must be a number")
    if not np.isfinite(quantity) or quantity < 0:
        raise InvalidFootprintInput(f"{section}.{field} must be a non-negative number")
    return quantity


def round_half_up(value):
    """Round to the nearest integer, halves away from zero (2.5 -> 3)"""
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def calculate_footprint(payload):
    """
    Calculate the carbon footprint of the calculator form

    Args:
        payload (dict): {"transportation": {...}, "home": {...}, "food": {...}}

    Returns:
        dict: total, per-section subtotals, comparison stats and level
    """
    if not isinstance(payload, dict):
        raise InvalidFootprintInput("Calculator input must be an object")

    subtotals = {}
    for section, factors in EMISSION_FACTORS.items():
        values = payload.get(section) or {}
        if not isinstance(values, dict):
            raise InvalidFootprintInput(f"{section} must be an object")

        fields = list(factors.keys())
        quantities = np.array([_read_quantity(section, f, values.get(f)) for f in fields])
        weights = np.array([factors[f] for f in fields])
        subtotals[section] = float(np.dot(quantities, weights))

    total = sum(subtotals.values())
    level = classify_level(total)

    return {
        'total': round(total, 2),
        'breakdown': {section: round(value, 2) for section, value in subtotals.items()},
        'comparison': {
            'trees': round_half_up(total / TREE_ABSORPTION_KG),
            'flights': round_half_up(total / FLIGHT_EMISSION_KG),
            'driving': round_half_up(total / CAR_KG_PER_KM / 100)
        },
        'carbonLevel': level,
        'emission_category': get_emission_category(level)
    }


def classify_level(total_emission):
    """
    Classify a weekly footprint (kg CO2) into a level 1-5
    """
    if total_emission < 17.5:
        return 1  # Very Low
    elif total_emission < 35:
        return 2  # Low
    elif total_emission < 56:
        return 3  # Moderate
    elif total_emission < 84:
        return 4  # High
    else:
        return 5  # Very High


def get_emission_category(level):
    return CATEGORY_MAPPING.get(level, CATEGORY_MAPPING[5])


def badges_earned(completed_count, current_badges):
    """
    Return milestone badges reached at completed_count that are not yet held
    """
    held = set(current_badges or [])
    return [
        badge for milestone, badge in sorted(BADGE_MILESTONES.items())
        if completed_count >= milestone and badge not in held
    ]


def next_sustainability_score(score):
    return min(MAX_SUSTAINABILITY_SCORE, (score or 0) + COMPLETION_SCORE)
