"""Storefront-wide constants and default policy values.

Centralizes magic numbers so that polling and storage policy can be
overridden from the environment in one place.
"""

# ============== BACKEND ==============
DEFAULT_BACKEND_URL = "http://localhost:9000"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
HEALTH_CHECK_TIMEOUT_SECONDS = 3.0

# ============== REGION / ADDRESS ==============
DEFAULT_CURRENCY = "eur"
DEFAULT_COUNTRY = "es"

# ============== ORDER POLLING ==============
ORDER_POLL_ATTEMPTS = 5
ORDER_POLL_DELAY_SECONDS = 2.0
ORDER_RETRY_POLL_ATTEMPTS = 3
ORDER_RETRY_POLL_DELAY_SECONDS = 1.0

# ============== CHECKOUT ==============
ADDRESS_DEBOUNCE_SECONDS = 0.5
PENDING_PAYMENT_TTL_SECONDS = 3600
CART_ID_TTL_SECONDS = 30 * 24 * 60 * 60

# ============== STORAGE KEYS ==============
CART_ID_KEY = "cart_id"
PENDING_PAYMENT_CART_KEY = "pending_payment_cart_id"
LOCAL_NAMESPACE = "storefront:local"
SESSION_NAMESPACE = "storefront:session"

# ============== NAVIGATION ==============
CART_REVIEW_PATH = "/cart"
CHECKOUT_PATH = "/checkout"
CONFIRMATION_PATH = "/checkout/confirmation"

# ============== CATALOG ==============
MIN_SEARCH_QUERY_LENGTH = 2
DEFAULT_SEARCH_LIMIT = 8
DEFAULT_SUGGESTION_LIMIT = 5
PRODUCT_PAGE_SIZE = 100
SIZE_ORDER = ("XS", "S", "M", "L", "XL", "XXL")
