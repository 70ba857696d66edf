import os

from dotenv import load_dotenv

load_dotenv()

# Model access
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "120"))

# Web
FRONTEND_URL = os.getenv("FRONTEND_URL", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Form limits
MAX_HOLDINGS = int(os.getenv("MAX_HOLDINGS", "10"))
