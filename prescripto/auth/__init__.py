"""
Authentication module for the medical clinic system.

This module provides:
- Patient self-registration and admin-created doctor accounts
- JWT token authentication
- Caller resolution and role-based access control dependencies
"""
