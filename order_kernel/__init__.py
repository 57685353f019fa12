"""
Order Kernel

Shared infrastructure for the order batch pipeline:
- Structured JSON logging with run-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clock
- SQLAlchemy base classes, engine and the ``orders`` table
"""

__version__ = "0.1.0"
