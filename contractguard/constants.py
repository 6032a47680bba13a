"""
Centralized Constants - SINGLE SOURCE OF TRUTH

Error codes, audit field lists and pipeline defaults used by the contract
engine and its conditions. Import from here; DO NOT duplicate these lists
in other modules.
"""

# =============================================================================
# PIPELINE DEFAULTS
# =============================================================================

# Layer label used when a contract does not declare one
DEFAULT_LAYER = "unknown"

# Layers that answer authentication failures with a login redirect
REDIRECT_LAYERS = {"presentation"}

# Default login location for redirect responses
DEFAULT_LOGIN_URL = "/login"

# =============================================================================
# ROLES
# =============================================================================

# Role that bypasses ownership lookups
ADMIN_ROLE = "admin"

# Role assigned by adapters when a user carries no role information
DEFAULT_USER_ROLES = ["user"]

# =============================================================================
# RATE LIMITING
# =============================================================================

# Default rate limit window (1 minute)
DEFAULT_RATE_LIMIT_WINDOW_MS = 60_000

# Counter key prefix; full key is "rate_limit:<user_id>:<operation>"
RATE_LIMIT_KEY_PREFIX = "rate_limit"

# =============================================================================
# AUDIT LOGGING
# =============================================================================

# Fields removed (at every depth) from audited input/output
SENSITIVE_FIELDS = (
    "password",
    "token",
    "secret",
    "session",
    "apiKey",
    "accessToken",
    "refreshToken",
    "privateKey",
    "secretKey",
)

# Resource id lookup order for audit records (first usable value wins)
RESOURCE_ID_FIELDS = ("id", "userId", "resourceId", "entityId", "documentId")

# Placeholder when no resource id can be extracted
RESOURCE_ID_FALLBACK = "N/A"

# User id recorded for unauthenticated calls
ANONYMOUS_USER_ID = "anonymous"

# Suffix appended to the action of failure records
FAILURE_ACTION_SUFFIX = "_FAILED"

# =============================================================================
# ADAPTERS
# =============================================================================

# Session lifetime assumed when an adapter session carries no expiry
DEFAULT_SESSION_TTL_HOURS = 24

# User field aliases applied by BaseAdapter.transform_user (first hit wins)
USER_ID_ALIASES = ("id", "sub", "userId", "_id")
USER_NAME_ALIASES = ("name", "displayName")

# Session field aliases applied by BaseAdapter.transform_session
SESSION_ID_ALIASES = ("id", "sessionId", "sid")
SESSION_EXPIRY_ALIASES = ("expiresAt", "expires")
