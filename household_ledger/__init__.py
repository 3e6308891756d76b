"""
Household Ledger - Source Package

Turns monthly household workbooks into a running ledger of account
balances and the report views built on top of it.

DESIGN PRINCIPLES:
1. Closed vocabularies: categories and accounts are enumerations
2. Fail early, fail visibly (a bad worksheet is reported, never guessed)
3. Merging ledgers never mutates its inputs
4. Report extraction is read-only
5. Storage layer is swappable
"""

__version__ = "0.1.0"
__author__ = "Household Ledger Team"
