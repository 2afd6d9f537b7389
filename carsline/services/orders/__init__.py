"""
Order lifecycle and sequential order numbering.

Submodules:
- enums: order type and status codes
- numbering: next order number per prefix
- pricing: order cost snapshot
- projection: next service projection policy
- state_machine: allowed status transitions
- gateway: persistence interface
- repository: SQLAlchemy implementation of the gateway
- service: create, cancel and deliver operations
"""
