"""
Referral network core.

Maintains the sponsor forest, builds leveled downline views and credits
subscription commissions up the upline.
"""

__version__ = "1.0.0"
