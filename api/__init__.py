"""
FastAPI RESTful API for the Book Catalog.

This module provides a REST API for:
- Creating, updating, reading and deleting books
- Paged listing with pagination headers
- Full-text search over the Elasticsearch mirror
- Health reporting including search index divergence
"""
