# Key layout for the MathsMayhem key-value store

from datetime import datetime

CURRENT_VERSION = "2.0"
OLDEST_VERSION = "1.0"

CURRENT_USER_KEY = "currentUser"
USERS_KEY = "mathsUsers"
MIGRATION_LOG_KEY = "migrationLog"
APP_VERSION_KEY = "appVersion"

BACKUP_PREFIX = "mathsMayhem_backup_"
MIGRATION_LOG_LIMIT = 50

# Flat keys written before per-user namespacing (version 1.x)
LEGACY_SUBSCRIPTION_KEYS = {
    "plan": "subscriptionPlan",
    "start_date": "subscriptionStartDate",
    "is_trial_user": "isTrialUser",
    "trial_start_date": "trialStartDate",
    "trial_end_date": "trialEndDate",
    "has_used_trial": "hasUsedTrial",
    "has_payment_method": "hasPaymentMethod",
    "subscription_id": "subscriptionId",
    "card_last4": "cardLast4",
    "card_type": "cardType",
    "card_expiry": "cardExpiry",
    "cardholder_name": "cardholderName",
}

LEGACY_PROGRESS_KEYS = {
    "quizzes_completed": "quizzesCompleted",
    "correct_answers": "correctAnswers",
    "total_score": "totalScore",
    "streak": "currentStreak",
    "best_streak": "bestStreak",
    "last_quiz_date": "lastQuizDate",
    "daily_quiz_count": "dailyQuizCount",
    "themes": "selectedTheme",
}

USER_DATA_KEYS = frozenset(
    [CURRENT_USER_KEY, USERS_KEY, "justUpgraded", "appliedDiscount"]
    + list(LEGACY_SUBSCRIPTION_KEYS.values())
    + list(LEGACY_PROGRESS_KEYS.values())
)
USER_DATA_FRAGMENTS = ("_backup", "_subscription", "_progress")


def subscription_key(username: str, v2: bool = True) -> str:
    return f"{username}_subscription_v2" if v2 else f"{username}_subscription"


def progress_key(username: str, v2: bool = True) -> str:
    return f"{username}_progress_v2" if v2 else f"{username}_progress"


def user_backup_key(username: str) -> str:
    return f"{username}_backup"


def is_backup_record_key(key: str) -> bool:
    return key.startswith(BACKUP_PREFIX)


def is_user_data_key(key: str) -> bool:
    """Whether a key belongs in a full backup. Backup records themselves never do."""
    if is_backup_record_key(key):
        return False
    if key in USER_DATA_KEYS:
        return True
    return any(fragment in key for fragment in USER_DATA_FRAGMENTS)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with microseconds and a trailing Z."""
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def backup_key_for(timestamp: str) -> str:
    return BACKUP_PREFIX + timestamp.replace(":", "-").replace(".", "-")
