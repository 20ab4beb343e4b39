"""
Investment Club Engine

Membership, periodic investment obligations, exact-amount settlement and a
capability-gated pooled treasury for cooperative investment clubs.
"""

__version__ = "1.0.0"
