"""
Payroll Modules.

Thin orchestration layers over the kernel and the settlement engines.
Each module contains:
- Domain models (the nouns)
- ORM persistence models
- Workflows (state machines)
- Configuration schemas (policy and settings)
- A service facade

Modules:
- Settlement: 13th-salary installments and termination settlements (TRCT)
"""
