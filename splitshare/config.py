"""
Configuration for SplitShare, read from the environment (and .env).
"""

import os

from dotenv import load_dotenv

load_dotenv()

# --- Telegram ---

BOT_TOKEN = os.environ.get("BOT_TOKEN", "YOUR_BOT_TOKEN_HERE")
WEBHOOK_URL = os.environ.get("WEBHOOK_URL", "")  # e.g. https://your-service-xxx.run.app
PORT = int(os.environ.get("PORT", "8080"))

# --- MongoDB ---

MONGO_URI = os.environ.get("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.environ.get("MONGO_DB", "splitshare")
MONGO_COLLECTION = os.environ.get("MONGO_COLLECTION", "sessions")

# --- Receipt parsing (Gemini) ---

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"
RECEIPT_TIMEOUT = float(os.environ.get("SPLITSHARE_RECEIPT_TIMEOUT", "30"))
RECEIPT_TOTAL_TOLERANCE = float(os.environ.get("SPLITSHARE_RECEIPT_TOTAL_TOLERANCE", "1.0"))

# --- Sessions ---

DEFAULT_CURRENCY = os.environ.get("SPLITSHARE_DEFAULT_CURRENCY", "INR")
DEFAULT_SESSION_MINUTES = int(os.environ.get("SPLITSHARE_SESSION_MINUTES", "30"))
MIN_SESSION_MINUTES = 1
MAX_SESSION_MINUTES = 1440
SESSION_ID_LENGTH = 6

# One cent/paisa
ROUNDING_THRESHOLD = float(os.environ.get("SPLITSHARE_ROUNDING_THRESHOLD", "0.01"))

# --- Payment link ---

PAYMENT_HANDLE = os.environ.get("PAYMENT_HANDLE", "upiaddress@okhdfcbank")
PAYMENT_NAME = os.environ.get("PAYMENT_NAME", "Organizer")
