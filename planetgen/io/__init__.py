"""
Planet Generator - Input and Output
Tile templates, value fallback resolution and surface serialization.
"""
