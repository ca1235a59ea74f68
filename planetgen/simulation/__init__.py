"""
Planet Generator - Simulation
Climate, wind and sampling models the stages drive.
"""
