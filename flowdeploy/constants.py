"""
FlowDeploy CLI Constants

Centralized constants for magic values, defaults, and configuration.
"""

# API Configuration
DEFAULT_API_URL = "http://localhost:4000/api"
DEFAULT_REQUEST_TIMEOUT = 30.0
API_PATH_SUFFIX = "/api"

# Local storage
DEFAULT_CONFIG_DIR = "~/.flowdeploy"
CONFIG_FILENAME = "config.yml"
CREDENTIALS_FILENAME = "credentials.yml"
LOGS_DIRNAME = "logs"

# Environment variable overrides
ENV_PREFIX = "FLOWDEPLOY_"

# Real-time channel
STREAM_TRANSPORTS = ["websocket", "polling"]
STREAM_RECONNECTION_ATTEMPTS = 5
STREAM_RECONNECTION_DELAY = 1.0
STREAM_DISCONNECT_GRACE = 2.0

# Plans
FREE_PLAN = "free"
FREE_PLAN_MAX_DEPLOYMENTS = 1
PURCHASABLE_PLANS = ["starter", "pro"]
ENTERPRISE_PLAN = "enterprise"
DEFAULT_CURRENCY = "INR"

# Server error codes that signal a plan ceiling
LIMIT_ERROR_CODES = ["DEPLOYMENT_LIMIT_REACHED", "PLAN_LIMIT_REACHED", "LIMIT_REACHED"]

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
LOG_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
