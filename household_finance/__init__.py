"""
Household Finance - Source Package

A record-keeping layer for a household's money: transactions, budgets,
financial goals, household members' income, and category suggestions.

DESIGN PRINCIPLES:
1. Every operation is a stateless call against durable storage
2. Malformed input fails fast with a typed error
3. Empty results are values, not errors
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Finance Team"
