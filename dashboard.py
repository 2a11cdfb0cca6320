"""
Dashboard aggregation over a user's habit records
"""

from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

MAX_STREAK_DAYS = 365
RECENT_ACTIVITY_LIMIT = 10
UPCOMING_CHALLENGE_LIMIT = 3

# Fixed challenge catalogue (order matters)
CHALLENGE_CATALOGUE = (
    {
        "title": "Meatless Monday",
        "description": "Skip meat for a full day",
        "impact": "Saves ~8kg of CO2",
        "category": "diet"
    },
    {
        "title": "Energy Saver",
        "description": "Reduce electricity usage by 10%",
        "impact": "Saves ~5kg of CO2",
        "category": "energy"
    },
    {
        "title": "Zero Waste Day",
        "description": "Produce no waste for 24 hours",
        "impact": "Prevents landfill waste",
        "category": "waste"
    },
    {
        "title": "Public Transport Day",
        "description": "Use only public transport or bike",
        "impact": "Saves ~3kg of CO2",
        "category": "transport"
    },
    {
        "title": "Water Conservation",
        "description": "Reduce water usage by 20%",
        "impact": "Saves ~2kg of CO2",
        "category": "water"
    },
    {
        "title": "Plastic-Free Day",
        "description": "Avoid all single-use plastic",
        "impact": "Prevents plastic waste",
        "category": "waste"
    }
)


def _day_key(value):
    """Ordinal day number of a date or datetime (time of day dropped)"""
    if isinstance(value, datetime):
        value = value.date()
    return value.toordinal()


def _record_date(habit):
    return habit.date or habit.createdAt


def _iso(value):
    return value.isoformat() if value else None


def round_carbon(values):
    """
    Sum footprint values and round half-up to one decimal place.

    Summing in Decimal keeps 5.2 + 6.35 at exactly 11.55 so it rounds to 11.6.
    """
    total = sum((Decimal(str(v or 0)) for v in values), Decimal('0'))
    return float(total.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def calculate_streak(completion_dates, today=None):
    """
    Count consecutive completion days ending today or yesterday.

    Args:
        completion_dates (iterable): dates or datetimes of completed habits
        today (date): current date, defaults to the local date

    Returns:
        int: streak length, 0 to MAX_STREAK_DAYS
    """
    days = {_day_key(d) for d in completion_dates if d is not None}
    if not days:
        return 0

    today_key = _day_key(today or date.today())
    yesterday_key = today_key - 1

    if today_key in days:
        cursor = today_key
    elif yesterday_key in days:
        cursor = yesterday_key
    else:
        return 0  # broken streak resets

    streak = 1
    while streak < MAX_STREAK_DAYS:
        cursor -= 1
        if cursor not in days:
            break
        streak += 1
    return streak


def recent_activities(habits, limit=RECENT_ACTIVITY_LIMIT):
    """Describe the most recent habits, newest first"""
    ordered = sorted(habits, key=_record_date, reverse=True)
    activities = []
    for habit in ordered[:limit]:
        if habit.isCompleted:
            activities.append({
                "action": "Completed challenge",
                "description": habit.description,
                "date": _iso(habit.completedDate or _record_date(habit))
            })
        else:
            activities.append({
                "action": "New habit",
                "description": habit.description,
                "date": _iso(_record_date(habit))
            })
    return activities


def upcoming_challenges(habits, limit=UPCOMING_CHALLENGE_LIMIT):
    """First `limit` catalogue challenges; the user's habits do not affect the selection"""
    return [dict(challenge) for challenge in CHALLENGE_CATALOGUE[:limit]]


def build_dashboard(habits, today=None):
    """
    Build the dashboard view for one user's habits

    Args:
        habits (list): Habit objects of a single user, any order
        today (date): current date, defaults to the local date

    Returns:
        dict: JSON-ready dashboard data
    """
    habits = list(habits)
    completed = [h for h in habits if h.isCompleted]

    return {
        "ecoChallengesCompleted": len(completed),
        "carbonSaved": round_carbon(h.carbonFootprint for h in completed),
        "streakDays": calculate_streak((h.completedDate for h in completed), today=today),
        "recentActivities": recent_activities(habits),
        "upcomingChallenges": upcoming_challenges(habits)
    }
