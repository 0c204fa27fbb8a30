"""
Random numbers for the MC sampling and the refmult dithering

Holds a numpy Generator with an explicit seed. Independent, reproducible
streams for e.g. each point in a parameter scan are made with `child`,
which derives a new SeedSequence from the parent seed and some integer
indices; the stream a point gets doesn't depend on the order the points are
evaluated in or on how many processes are used.

"""
from typing import Union
import numpy as np


class RandomSource:
    """
    Uniform, negative binomial and binomial variates from a seeded generator

    """

    def __init__(self, seed: Union[int, np.random.SeedSequence, None] = None):
        """
        :param seed: integer seed, or a SeedSequence. If None, fresh entropy is
                     taken from the OS (and the streams are not reproducible)

        """
        self.seed(seed)

    def seed(self, seed: Union[int, np.random.SeedSequence, None]) -> None:
        """Reset the generator with a new seed"""
        if not isinstance(seed, np.random.SeedSequence):
            seed = np.random.SeedSequence(seed)

        self._seed_seq = seed
        self._gen = np.random.default_rng(seed)

    def child(self, *indices: int) -> "RandomSource":
        """
        Independent stream, determined only by this stream's seed and the indices

        """
        return RandomSource(
            np.random.SeedSequence(
                self._seed_seq.entropy,
                spawn_key=(*self._seed_seq.spawn_key, *indices),
            )
        )

    def uniform(self, size=None) -> Union[float, np.ndarray]:
        """Uniform in [0, 1)"""
        return self._gen.random(size)

    def negative_binomial(self, n, p) -> np.ndarray:
        """
        Number of failures before n successes, success probability p

        Shape n need not be an integer; the sum of m NBD(n, p) variates is NBD(m * n, p)

        """
        return self._gen.negative_binomial(n, p)

    def binomial(self, n, p) -> np.ndarray:
        """Binomial variates"""
        return self._gen.binomial(n, p)

    def accept(self, probability: float, size: int) -> np.ndarray:
        """Boolean mask, each entry True with the given probability"""
        return self._gen.random(size) < probability
