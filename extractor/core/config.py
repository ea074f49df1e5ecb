from pathlib import Path
from dotenv import load_dotenv
from cachetools import TTLCache

# Load environment variables
load_dotenv()


# Subscription plans (limits are per UTC day, counted in URLs)
PLAN_LIMITS = {
    "free": {"daily_extraction_limit": 100, "can_use_csv_upload": False, "is_unlimited": False},
    "basic": {"daily_extraction_limit": 1000, "can_use_csv_upload": True, "is_unlimited": False},
    "premium": {"daily_extraction_limit": 10000, "can_use_csv_upload": True, "is_unlimited": True},
}
UPGRADE_PATH = {"free": "basic", "basic": "premium"}
UPGRADE_HINT_RATIO = 0.8

# Paths likely to hold contact details
CONTACT_PATHS = [
    "/contact", "/contact-us", "/contactus", "/about", "/about-us",
    "/support", "/help", "/team", "/company", "/impressum",
]
CONTACT_LINK_KEYWORDS = ("contact", "about", "support", "help", "team", "impressum", "kontakt")

# Cache Configuration
# TODO: Replace with a shared cache (e.g. Redis) when running more than one worker process
WHOIS_CACHE = TTLCache(maxsize=512, ttl=6 * 3600)
ROBOTS_CACHE = TTLCache(maxsize=1024, ttl=3600)

# Directory Configuration
BASE_DIR = Path(__file__).parent.parent.parent
LOGS_DIR = BASE_DIR / "logs"

# Ensure directories exist
LOGS_DIR.mkdir(exist_ok=True)
