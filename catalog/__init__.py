"""
Book catalog core.

This package contains:
- Book entity, DTO and pagination models
- Entity/DTO mapper
- MongoDB primary store
- Elasticsearch search index
- Book service mirroring primary writes into the index
- Index divergence monitoring
"""

__version__ = "1.0.0"
