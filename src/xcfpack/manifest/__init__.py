"""
The `manifest` sub-package turns a persisted checksum record and a declared
product graph into a Swift package manifest, and validates the result.
"""
