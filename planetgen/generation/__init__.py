"""
Planet Generator - Generation Package
Contains all generation stages and the pipeline that runs them.
"""

# Import these lazily to avoid circular imports
__all__ = [
    "GenerationPipeline",
    "create_pipeline",
]
