"""
Referral network constants.

Fixed bounds and identifiers shared by the network services.
"""

# Hard cap on any upline/downline walk. Protects against corrupted
# sponsor data causing unbounded traversal.
MAX_CHAIN_DEPTH = 50

# Default depth for leveled downline views
DEFAULT_DOWNLINE_LEVELS = 10

# Legacy two-level tree (level 1 + level 2)
LEGACY_TREE_LEVELS = 2

# Ledger commission type for subscription activations
COMMISSION_TYPE_SUBSCRIPTION = "subscription_payment"

# Window used to decide whether a subscription was already active
DEFAULT_RECENT_COMMISSION_WINDOW_DAYS = 30
