"""
Permission feature module.

Capability catalog, organization-scoped roles and their grants, and the
single role classification used by every access decision.
"""
