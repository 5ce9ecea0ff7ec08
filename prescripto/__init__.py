"""
Prescripto records backend: prescriptions and lab test results.
"""
