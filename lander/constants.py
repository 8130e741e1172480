"""Centralized application constants — single source of truth for hardcoded values."""

# --- Session ---
REFRESH_COOKIE_NAME = "refreshToken"

# --- Subscription ---
SUBSCRIPTION_STATUSES = ("inactive", "pending", "active")
RECONCILE_MAX_ATTEMPTS = 3

# --- Payment products and their return paths on the frontend ---
PRODUCT_SUBSCRIPTION = "subscription"
PRODUCT_ANIMATION = "animation"
PRODUCT_VOTING = "voting"
PRODUCT_RETURN_PATHS = {
    PRODUCT_SUBSCRIPTION: "/dashboard/account",
    PRODUCT_ANIMATION: "/dashboard",
    PRODUCT_VOTING: "/dashboard/voting",
}

# --- YooKassa webhook events ---
EVENT_PAYMENT_SUCCEEDED = "payment.succeeded"
EVENT_PAYMENT_FAILED = "payment.failed"
WEBHOOK_SIGNATURE_HEADER = "X-Webhook-Signature"

# --- HTTP Client ---
HTTP_TOTAL_TIMEOUT = 30  # seconds
HTTP_CONNECT_TIMEOUT = 10  # seconds
PAYMENT_HISTORY_LIMIT = 50

# --- Worker ---
ARQ_MAX_JOBS = 10
ARQ_JOB_TIMEOUT = 300  # seconds (5 min)

# --- Pagination ---
VOTINGS_PER_PAGE = 10

# --- Passwords ---
BCRYPT_ROUNDS = 10
