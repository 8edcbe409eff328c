"""
Economy Kernel

Server-side authority for an asset-accrual micro-economy:
- Pure accrual math with a bounded 24-hour collection window
- Atomic, single-winner collection with gap diversion to the house vault
- Worker decay/repair and fixed-term investor maturity
- Time-windowed promotions applied at purchase time
- Append-only ledger that reconciles to every account balance
"""

__version__ = "0.1.0"
