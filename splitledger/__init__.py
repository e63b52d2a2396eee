"""
SplitLedger - Source Package

A shared-expense ledger: record who paid for what, split the cost
between participants and keep track of who owes whom.

DESIGN PRINCIPLES:
1. Local state first, remote persistence second, and the caller always
   learns which of the two happened
2. Fail early, fail visibly: invalid splits never reach the ledger
3. No silent corrections to amounts the user entered
4. Every mutation is auditable
5. Storage and speech services are swappable
"""

__version__ = "1.0.0"
__author__ = "SplitLedger Team"
