"""
Qota Compensation - Pydantic Schemas Package

Request/response schemas for API endpoints.
"""
