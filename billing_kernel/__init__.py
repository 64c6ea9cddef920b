"""
Billing Kernel

Value objects and infrastructure shared by the billing calculators:
- Decimal-only Money with explicit half-up rounding
- Typed exceptions with machine-readable codes
- Structured JSON logging with request context
- Injectable clock and tenant/user context
"""

__version__ = "0.1.0"
