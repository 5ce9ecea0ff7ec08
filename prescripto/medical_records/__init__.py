"""
Medical records module for the Prescripto clinic.

This module provides:
- Prescriptions written by doctors for their patients
- Lab test results with uploaded reports and images
- Human-readable, date-scoped record identifiers
- Role-scoped listings and aggregate statistics
"""
