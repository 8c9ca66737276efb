"""
Response redaction feature module.

Removes financial fields from outgoing payloads for roles outside the
financial-access allowlist.
"""
