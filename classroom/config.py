import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./classroom.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_SECRET_KEY")
JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", "CHANGE_ME_REFRESH_SECRET_KEY")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

MEET_BASE_URL = os.getenv("MEET_BASE_URL", "https://meet.google.com")

DEFAULT_QUESTION_POINTS = 10
DEFAULT_MAX_POINTS = 100
DEFAULT_TIME_LIMIT = 30  # minutes
DEFAULT_ATTEMPTS_ALLOWED = 1

# attendance calendar: 5 weeks, today sits on day 18
CALENDAR_DAYS = 35
CALENDAR_DAYS_BEFORE_TODAY = 17

UPCOMING_DEADLINES_LIMIT = 5
RECENT_ITEMS_LIMIT = 3
