"""Deal management module -- data models, schemas, repository and lifecycle.

Provides SQLAlchemy models (Company, Customer, Deal, FileLink, AuditEntry),
Pydantic schemas, DealRepository with per-deal transactions, the
DealStateMachine enforcing the deal lifecycle, the AuditRecorder, and the
SalesWorkflows that provision folders for companies and deals.
"""
