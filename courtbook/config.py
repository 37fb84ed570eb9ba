import logging
import os

logger = logging.getLogger(__name__)

# --- File Paths ---
DATA_DIR = os.environ.get("COURTBOOK_DATA_DIR", "public/data")
STATE_FILE = os.path.join(DATA_DIR, "state.json")

# --- Backend (PostgREST) ---
SUPABASE_URL = os.environ.get("SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY")
HTTP_TIMEOUT = int(os.environ.get("HTTP_TIMEOUT", "10"))

# How often a polling subscription re-fetches occupancy for the active date
POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "5"))

# --- Booking rules ---
CURRENCY = os.environ.get("CURRENCY", "LKR")
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
PHONE_PATTERN = r"^0[0-9]{9}$"
PHONE_COUNTRY_PREFIX = "+94"
EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

# --- SMS gateway ---
SMS_GATEWAY_BASE_URL = os.environ.get("SMS_GATEWAY_BASE_URL", "https://api.textbee.dev/api/v1")
SMS_API_KEY = os.environ.get("SMS_API_KEY")
SMS_DEVICE_ID = os.environ.get("SMS_DEVICE_ID")
if not SMS_API_KEY or not SMS_DEVICE_ID:
    logger.warning("SMS gateway configuration incomplete. Skipping notifications.")
