"""
Prompts and calls to the generative AI provider (Gemini REST API)
"""

import os

import requests
from flask import current_app

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-1.5-flash"
REQUEST_TIMEOUT = 15

SYSTEM_PROMPT = (
    "You are EcoBot, a friendly sustainability assistant. Give practical, "
    "specific advice for reducing carbon footprint and building eco-friendly habits. "
    "Keep answers short."
)


class AIServiceError(Exception):
    """The AI provider is not configured or did not answer"""


def generate_text(prompt):
    """
    Send a prompt to the provider and return the reply text

    Raises:
        AIServiceError: no API key, transport failure or empty reply
    """
    api_key = os.environ.get("GEMINI_API_KEY", "")
    if not api_key:
        raise AIServiceError("GEMINI_API_KEY is not configured")

    model = os.environ.get("GEMINI_MODEL", DEFAULT_MODEL)
    url = f"{GEMINI_API_BASE}/{model}:generateContent"
    payload = {
        "contents": [{"parts": [{"text": f"{SYSTEM_PROMPT}\n\n{prompt}"}]}],
        "generationConfig": {"temperature": 0.3, "topP": 0.9, "maxOutputTokens": 800}
    }

    try:
        r = requests.post(url, params={"key": api_key}, json=payload, timeout=REQUEST_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        current_app.logger.warning("Gemini request failed: %s", e)
        raise AIServiceError("AI provider request failed") from e

    try:
        candidate = (data.get("candidates") or [{}])[0]
        parts = (candidate.get("content") or {}).get("parts") or [{}]
        reply = parts[0].get("text") or ""
    except (AttributeError, IndexError, TypeError) as e:
        current_app.logger.warning("Gemini reply not understood: %s", e)
        raise AIServiceError("AI provider returned an unexpected reply") from e

    if not isinstance(reply, str) or not reply.strip():
        current_app.logger.warning("Gemini returned no text (finishReason=%s)", candidate.get("finishReason"))
        raise AIServiceError("AI provider returned an empty reply")
    return reply.strip()


def _profile_lines(user):
    prefs = user.goalPreferences or {}
    return (
        f"Sustainability score: {user.sustainabilityScore}\n"
        f"Green points: {user.greenPoints}\n"
        f"Badges: {', '.join(user.badges or []) or 'none'}\n"
        f"Preferences: diet={prefs.get('diet')}, transport={prefs.get('transport')}, "
        f"energy={prefs.get('energyUse')}, waste={prefs.get('wasteManagement')}"
    )


def _habit_lines(habits, limit=20):
    if not habits:
        return "No habits logged yet."
    lines = []
    for h in habits[:limit]:
        status = "completed" if h.isCompleted else "not completed"
        lines.append(f"- [{h.category}] {h.description} ({h.carbonFootprint} kg CO2, {status})")
    return "\n".join(lines)


def chat_prompt(user, message, history=None):
    recent = "\n".join(f"{m['role']}: {m['content']}" for m in (history or [])[-10:])
    return (
        f"User profile:\n{_profile_lines(user)}\n\n"
        f"Conversation so far:\n{recent or '(new conversation)'}\n\n"
        f"user: {message}\nai:"
    )


def analysis_prompt(user, habits):
    return (
        f"Analyze this user's eco-friendly habits and point out strengths, "
        f"weak spots and three next steps.\n\n"
        f"User profile:\n{_profile_lines(user)}\n\nHabits:\n{_habit_lines(habits)}"
    )


def suggestions_prompt(user, category=None):
    focus = f"the '{category}' category" if category else "any category"
    return (
        f"Suggest five new sustainable habits for {focus}, each with an "
        f"estimated CO2 saving.\n\nUser profile:\n{_profile_lines(user)}"
    )


def footprint_prompt(description):
    return (
        "Estimate the carbon footprint in kg CO2 of the following activity, "
        "explain the estimate briefly and give one lower-carbon alternative.\n\n"
        f"Activity: {description}"
    )
