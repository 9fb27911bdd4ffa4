"""
Core infrastructure for the Tubely backend.

- auth: Bearer-token extraction and JWT validation
- database: MongoDB async client with Motor driver and connection pooling
- storage: Asset stores for local disk and S3-compatible object storage
"""
