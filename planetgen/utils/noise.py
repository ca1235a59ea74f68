"""
Planet Generator - Noise Generation Utilities
Provides deterministic noise sampled on the unit sphere, so fields have no
seams at the antimeridian or distortion at the poles.
"""

import numpy as np
from opensimplex import OpenSimplex


class NoiseGenerator:
    """
    Deterministic fractal noise using OpenSimplex.

    Samples 3D noise at points on the unit sphere scaled by ``scale``.
    The same seed always yields the same field.
    """

    def __init__(
        self,
        seed: int,
        octaves: int = 4,
        persistence: float = 0.5,
        lacunarity: float = 2.0,
        scale: float = 1.5
    ):
        """
        Initialize noise generator with parameters.

        Args:
            seed: Random seed for deterministic generation
            octaves: Number of noise layers to combine
            persistence: Amplitude multiplier per octave (0-1)
            lacunarity: Frequency multiplier per octave (>1)
            scale: Feature frequency on the unit sphere
        """
        self.seed = seed
        self.octaves = octaves
        self.persistence = persistence
        self.lacunarity = lacunarity
        self.scale = scale

        self.simplex = OpenSimplex(seed=seed)

    def sample(self, x: float, y: float, z: float) -> float:
        """
        Fractal noise at one point.

        Returns:
            Value in roughly [-1, 1]
        """
        value = 0.0
        amplitude = 1.0
        frequency = self.scale
        max_value = 0.0

        for _ in range(self.octaves):
            value += self.simplex.noise3(x * frequency, y * frequency, z * frequency) * amplitude
            max_value += amplitude
            amplitude *= self.persistence
            frequency *= self.lacunarity

        return value / max_value

    def sample_points(self, points: np.ndarray, normalize: bool = False) -> np.ndarray:
        """
        Fractal noise at many points.

        Args:
            points: (N, 3) array of unit vectors
            normalize: If True, map output to [0, 1]

        Returns:
            (N,) array of noise values
        """
        values = np.array([self.sample(p[0], p[1], p[2]) for p in points], dtype=np.float64)
        if normalize:
            values = (values + 1.0) / 2.0
        return values

    def sample_ridged(self, points: np.ndarray) -> np.ndarray:
        """
        Ridged noise, useful for mountain chains along plate seams.

        Returns:
            (N,) array in [0, 1]
        """
        ridged = 1.0 - np.abs(self.sample_points(points))
        return ridged ** 2
