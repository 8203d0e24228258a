"""
Flatmate - Household Core

The logic behind a shared-household tracker: who owes whom,
whose turn it is to clean, and who is allowed in.

DESIGN PRINCIPLES:
1. Money is exact (integer cents inside, 2 decimals outside)
2. Pure engines, thin workflows
3. Workflows report failures, engines raise on misuse
4. Every mutation is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Flatmate Team"
