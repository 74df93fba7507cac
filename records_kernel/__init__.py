"""
Records Kernel - approval workflow core

Governs how a computed academic-metrics record for a student-term moves
through the ordered chain of approving officers:
- Officer hierarchy registry (CEO -> HOD -> DEAN)
- Per-stage approval entries with flagging and flag resolution
- Session-scoped record store and reconciliation of server responses
- Structured logging and typed errors
"""

__version__ = "0.1.0"
