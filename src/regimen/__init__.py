"""
Regimen: deterministic weekly workout plans.

Rule-based engine that turns a user profile and an exercise catalog into
a safe, reproducible weekly plan with demonstration media.
"""

__version__ = "0.1.0"
