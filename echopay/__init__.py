"""
EchoPay - Source Package

A two-party payment channel: two fixed accounts send money to each other
and hear about incoming payments as they arrive.

DESIGN PRINCIPLES:
1. Every transfer is written as a sent/received pair, or not at all
2. Ledger entries are never edited or removed
3. Validate before touching storage
4. Each client session owns its own view and notification state
5. Storage and notification are swappable
"""

__version__ = "1.0.0"
__author__ = "EchoPay Team"
