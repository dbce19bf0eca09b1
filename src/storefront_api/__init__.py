"""
Storefront API package.

Modules:
- config: typed settings read from the environment
- db: PostgreSQL connection pooling, session setup + query helpers
- auth_utils: password hashing and JWT helpers
- deps: request-scoped dependencies (connection, claims, context)
- errors: central exception -> HTTP response mapping
- schemas: Pydantic models for the REST API
- main: application factory and routes
"""
