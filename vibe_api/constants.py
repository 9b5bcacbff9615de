# vibe_api/constants.py
# Key layouts, limits and fixed values shared across layers

import re

# --- Key-value layout ---
CHAT_HISTORY_KEY = "chat-history:{email}"
CHAT_SESSION_KEY = "chat-session:{session_id}"
USER_DOMAINS_KEY = "user_domains:{email}"
STRIPE_CUSTOMER_KEY = "stripe_customer:{email}"
SANDBOX_TERMINALS_KEY = "sandbox-terminals:{sandbox_id}"

# --- Document collections ---
PUBLISHED_APPS_COLLECTION = "published_apps"
SESSION_FILES_COLLECTION = "session_files"

# --- Pagination ---
GALLERY_DEFAULT_LIMIT = 9
GALLERY_MAX_LIMIT = 9
CHAT_HISTORY_DEFAULT_LIMIT = 10
CHAT_HISTORY_MAX_LIMIT = 20

# --- Billing ---
CUSTOMER_CACHE_TTL_SECONDS = 900
CUSTOMER_NEGATIVE_CACHE_TTL_SECONDS = 300
CUSTOMER_CREATED_VIA = "vibe-coding-platform"
TELEMETRY_PRODUCT = "vibe-coding-platform"
TELEMETRY_EVENT_OTHER = "Other Engagement"

# --- Sessions ---
SESSION_TITLE_MAX_CHARS = 50
SESSION_UPDATE_MAX_RETRIES = 4

# --- Terminals ---
TERMINAL_STATUS_READY = "ready"
TERMINAL_REGISTRY_TTL_SECONDS = 24 * 3600

# --- Sandboxes ---
SANDBOX_EXPIRATION_MINUTES = 45
SANDBOX_DEFAULT_PORTS = [3000]
SANDBOX_CREATE_MAX_RETRIES = 3
# installs dependencies, then keeps the dev server running in the background
DEV_SERVER_SCRIPT = "npm install; npm run dev"

INITIAL_FILE_LISTING_ARGS: list[str] = [
    ".", "-maxdepth", "3", "-type", "f",
    "!", "-path", "./node_modules/*",
    "!", "-path", "./.git/*",
    "!", "-name", ".*",
]

LIST_FILES_MAX_DEPTH = "10"
LIST_FILES_EXCLUDE_ARGS: list[str] = [
    "-not", "-path", "*/node_modules*",
    "-not", "-path", "*/.git*",
    "-not", "-path", "*/.next*",
    "-not", "-path", "*/dist*",
    "-not", "-path", "*/build*",
    "-not", "-path", "*/.cache*",
    "-not", "-path", "*/coverage*",
    "-not", "-path", "*/.nyc_output*",
    "-not", "-path", "*/logs*",
    "-not", "-path", "*/*.log*",
    "-not", "-name", "*.map",
    "-not", "-name", "*.tsbuildinfo",
    "-not", "-name", ".DS_Store",
]

# --- Session file snapshots ---
FIND_PRUNE_ARGS: list[str] = [
    ".", "-type", "f",
    "-not", "-path", "*/node_modules*",
    "-not", "-path", "*/.git*",
    "-not", "-path", "*/.next*",
    "-not", "-path", "*/dist*",
    "-not", "-path", "*/build*",
    "-not", "-path", "*/.cache*",
    "-not", "-path", "*/coverage*",
    "-not", "-path", "*/.nyc_output*",
    "-not", "-path", "*/logs*",
    "-not", "-name", "*.log",
    "-not", "-name", "*.map",
    "-not", "-name", "*.tsbuildinfo",
    "-not", "-name", ".DS_Store",
    "-not", "-name", "Thumbs.db",
    "-not", "-name", "desktop.ini",
    "-not", "-name", "package-lock.json",
    "-not", "-name", "yarn.lock",
    "-not", "-name", "pnpm-lock.yaml",
]

EXCLUDED_FILE_PATTERNS: list[re.Pattern] = [
    re.compile(p) for p in (
        r"node_modules",
        r"\.git",
        r"\.next",
        r"dist",
        r"build",
        r"\.cache",
        r"coverage",
        r"\.nyc_output",
        r"logs",
        r"\.log$",
        r"\.map$",
        r"\.tsbuildinfo$",
        r"\.DS_Store$",
        r"Thumbs\.db$",
        r"desktop\.ini$",
        r"\.env\.local$",
        r"\.env\.development\.local$",
        r"\.env\.test\.local$",
        r"\.env\.production\.local$",
        r"package-lock\.json$",
        r"yarn\.lock$",
        r"pnpm-lock\.yaml$",
    )
]
