"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_TITLE_LENGTH = 200
MAX_NOTE_LENGTH = 1000

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",      # React dev server
    "http://localhost:5173",      # Vite dev server
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Slot computation
DEFAULT_SLOT_STEP_MINUTES = 30
MAX_OVERLAY_RANGE_DAYS = 62  # Two calendar months of overlay per request
MINUTES_PER_DAY = 24 * 60

# Default window used when a weekday record has to be created
DEFAULT_WINDOW_START = "09:00"
DEFAULT_WINDOW_END = "17:00"

# One-time codes and tokens
OTP_CODE_LENGTH = 6
OTP_CODE_EXPIRE_MINUTES = 10
OTP_MAX_ATTEMPTS = 5
VERIFICATION_TOKEN_EXPIRE_MINUTES = 5
MANAGEMENT_TOKEN_EXPIRE_MINUTES = 60

# Code purposes (a code is bound to an (email, purpose) pair)
PURPOSE_BOOKING = "booking"
PURPOSE_MANAGE = "manage"
CODE_PURPOSES = (PURPOSE_BOOKING, PURPOSE_MANAGE)

# JWT purpose claims
TOKEN_PURPOSE_VERIFICATION = "otp-verification"
TOKEN_PURPOSE_MANAGEMENT = "booking-manage"
TOKEN_PURPOSE_ADMIN = "admin-access"

# Booking session housekeeping
SESSION_STATE_SLOT_RESERVED = "slot_reserved"  # Holds a pending booking until confirmed
BOOKING_SESSION_TTL_MINUTES = 15
SESSION_SWEEP_INTERVAL_MINUTES = 5
SESSION_SWEEP_MAX_INSTANCES = 1  # Prevent overlapping sweep runs
SESSION_SWEEP_MISFIRE_GRACE_SECONDS = 60

# Booking statuses (every status occupies its interval)
BOOKING_STATUS_PENDING = "pending"
BOOKING_STATUS_CONFIRMED = "confirmed"
BOOKING_STATUSES = (BOOKING_STATUS_PENDING, BOOKING_STATUS_CONFIRMED)

# User roles
ROLE_ADMIN = "admin"
ROLE_CUSTOMER = "customer"

# Single row serialising booking writers
BOOKING_LOCK_ID = 1
BOOKING_LOCK_NAME = "bookings"

DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
