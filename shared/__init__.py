"""Shared domain package for the Fast Shipper application.

This package contains code used by both the backend Flask API and the
client package. It includes:

- Database models (models.py) - SQLAlchemy models for users, packages, consolidations, shipments
- Enums (enums.py) - Shared enumeration definitions for statuses, carriers and categories
- Pricing (pricing.py) - Fee, shipping, insurance and storage arithmetic
- Validation utilities (validation.py, schemas.py) - Input validation and sanitization
- Utility functions (utils.py) - Suite numbers, tracking numbers and unit conversions
"""
