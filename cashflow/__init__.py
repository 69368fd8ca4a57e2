"""
Cash-Flow Planner - Source Package

A cash-flow planner for freelancers and small businesses: transactions,
the clients they settle against, and recurring transaction templates,
projected onto a calendar of expected cash movements.

DESIGN PRINCIPLES:
1. Settlement dates are derived, never typed in
2. Reconciled (settled) records are never touched by automation
3. Manual edits (detached instances) win over generated values
4. Recurrence is always bounded - windows roll forward explicitly
5. The engine proposes writes; storage commits them atomically
"""

__version__ = "1.0.0"
__author__ = "Cash-Flow Planner Team"
