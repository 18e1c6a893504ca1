"""
Payroll Kernel

Shared foundation for the statutory settlement engine:
- Structured JSON logging with request-scoped context
- Typed, coded exception hierarchy
- Injectable clock
- Cent-exact Decimal money helpers
- Workflow value objects
- SQLAlchemy declarative base and engine management
"""

__version__ = "0.1.0"
