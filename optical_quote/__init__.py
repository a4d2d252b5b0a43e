"""
Optical Quote — pricing and lifecycle core for optical retail quotes.

Covers the exam, eyeglasses and contacts layers of a quote: insurance
benefit allocation, discounts, tax, and the building → completed state
machine with pricing snapshots.
"""

__version__ = "0.1.0"
