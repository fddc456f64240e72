"""
Qota Compensation - Routers Package

FastAPI route handlers.

Routers:
- compensation: employee/team computation, projections, renewal multipliers
- collections: collection records, clawbacks and clawback balances
- payouts: monthly payout runs and full & final settlements
"""
