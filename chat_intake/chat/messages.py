"""面向终端用户的本地化文案（德语为主，英语为次）。"""

from typing import Dict, List

from chat_intake.domain.models import PRIMARY_LOCALE, Locale
from chat_intake.domain.outcomes import ErrorKind

FALLBACK_MESSAGES: Dict[Locale, str] = {
    "de": (
        "Entschuldigung, ich habe momentan technische Schwierigkeiten. "
        "Bitte rufen Sie uns direkt an oder besuchen Sie uns im Restaurant."
    ),
    "en": (
        "Sorry, I'm experiencing technical difficulties. "
        "Please call us directly or visit us at the restaurant."
    ),
}

VALIDATION_MESSAGES: Dict[Locale, Dict[ErrorKind, str]] = {
    "de": {
        ErrorKind.TOO_SHORT: "Nachricht ist zu kurz",
        ErrorKind.TOO_LONG: "Nachricht darf maximal {max_length} Zeichen lang sein",
        ErrorKind.INVALID_FORMAT: "Ungültige Eingabe. Bitte überprüfen Sie Ihre Daten.",
        ErrorKind.INVALID_TYPE: "Ungültige Nachricht",
    },
    "en": {
        ErrorKind.TOO_SHORT: "Message is too short",
        ErrorKind.TOO_LONG: "Message must be at most {max_length} characters long",
        ErrorKind.INVALID_FORMAT: "Invalid input. Please check your data.",
        ErrorKind.INVALID_TYPE: "Invalid message",
    },
}

RATE_LIMIT_MESSAGES: Dict[Locale, str] = {
    "de": "Zu viele Nachrichten. Bitte warten Sie einen Moment. ({remaining}/{max_attempts} übrig)",
    "en": "Too many messages. Please wait a moment. ({remaining}/{max_attempts} remaining)",
}

QUICK_ACTIONS: Dict[Locale, List[str]] = {
    "de": [
        "Was sind eure Spezialitäten?",
        "Welche Angebote gibt es diese Woche?",
        "Wie sind die Öffnungszeiten?",
        "Wo kann ich parken?",
        "Macht ihr auch Catering?",
        "Wo befindet sich das Restaurant?",
    ],
    "en": [
        "What are your specialties?",
        "What offers do you have this week?",
        "What are the opening hours?",
        "Where can I park?",
        "Do you offer catering?",
        "Where is the restaurant located?",
    ],
}


def _locale(locale: str) -> Locale:
    return locale if locale in FALLBACK_MESSAGES else PRIMARY_LOCALE


def fallback_message(locale: str) -> str:
    return FALLBACK_MESSAGES[_locale(locale)]


def validation_message(kind: ErrorKind, locale: str = PRIMARY_LOCALE, max_length: int = 2000) -> str:
    return VALIDATION_MESSAGES[_locale(locale)][kind].format(max_length=max_length)


def rate_limit_message(remaining: int, max_attempts: int, locale: str = PRIMARY_LOCALE) -> str:
    return RATE_LIMIT_MESSAGES[_locale(locale)].format(remaining=remaining, max_attempts=max_attempts)


def quick_actions(locale: str) -> List[str]:
    return list(QUICK_ACTIONS[_locale(locale)])
