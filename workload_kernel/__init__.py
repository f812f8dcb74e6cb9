"""
Workload Kernel - course load approval and overload payments.

- Closed course status enumeration with a single transition table
- Append-only approval and payment history
- Optimistic concurrency on courses
- Decimal load and money arithmetic with explicit rounding
"""

__version__ = "0.1.0"
