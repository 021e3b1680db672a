"""
PCS Kernel - shared foundation for the entitlement engine.

Provides the pieces every other layer builds on:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with claim-scoped context
- Immutable domain types (claims, reference rates, calculation results)
"""

__version__ = "0.1.0"
