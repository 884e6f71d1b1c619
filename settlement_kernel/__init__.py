"""
Settlement Kernel

Project financial settlement for a freelance/agency backend:
- Commission resolution (percentage or fixed)
- A single settlement calculator for owner and partner entitlements
- An atomic payment ledger (client transactions, stakeholder receipts)
- Partner attachment gated by accepted collaborations
- Listing and dashboard aggregation built on the calculator
"""

__version__ = "0.1.0"
