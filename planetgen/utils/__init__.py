"""
Planet Generator - Utilities
Noise, spherical geometry and map rendering helpers.
"""
