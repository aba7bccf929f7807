"""
Quote Engine Package

Wireless-service quoting for store reps: promotion eligibility, device
promotion selection and a deterministic monthly/upfront price breakdown.
"""

__version__ = "1.0.0"
