"""
Constants for CTK.

These constants are used by various modules for sensible defaults.
Several are also available via the config system.
"""

# Catalog source
DEFAULT_CATALOG_URL = "https://service-public.bj/api/portal/publicservices/"
CATALOG_QUERY_WITH_CATEGORIES = "categories=true&eservices=true"

# Network timeouts (in seconds)
DEFAULT_REQUEST_TIMEOUT = 10

# Rule evaluation limits
DEFAULT_RULE_TIMEOUT = 2.0
DEFAULT_RULE_MAX_STEPS = 100_000
DEADLINE_CHECK_INTERVAL = 256
MAX_STRING_LENGTH = 1_000_000
MAX_LIST_LENGTH = 1_000_000
MAX_EXPRESSION_DEPTH = 50

# Display limits
DEFAULT_PREVIEW_ROWS = 50
MAX_CELL_WIDTH = 60
