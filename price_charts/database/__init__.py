# Price Charts - Database Package
"""
Database models, connection management, and data access objects.

- models: Pydantic models for data validation
- connection: SQLite connection management
- dao: Data Access Objects for chart preferences and settings
"""
