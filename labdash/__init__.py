"""
Laboratory Dashboard Backend Package.

FastAPI reporting service over the newborn-screening laboratory store.
Aggregates unsatisfactory samples by facility and province, compares
periods, and counts received and screened samples per month.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, connection pool, errors, and dependencies
    - models: Pydantic schemas and enums
    - services: Classification rules, aggregation engine, response shaping
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
