"""
Random source factory.

Every sampling call in inferme takes an explicit numpy Generator. This module
turns an algorithm tag and a seed into one, and partitions a seed into
independent streams for parallel chains.
"""

from typing import List, Optional, Union
import numpy as np

BIT_GENERATORS = {
    "pcg64": np.random.PCG64,
    "pcg64dxsm": np.random.PCG64DXSM,
    "mt19937": np.random.MT19937,
    "philox": np.random.Philox,
    "sfc64": np.random.SFC64,
}

SeedLike = Union[None, int, np.random.SeedSequence]


def make_random_source(
    algorithm: str = "pcg64",
    seed: SeedLike = None,
) -> np.random.Generator:
    """
    Create a random source.

    Parameters
    ----------
    algorithm : str
        Bit generator tag, one of BIT_GENERATORS. Default "pcg64".
    seed : int or SeedSequence, optional
        Seed for reproducibility. If None, fresh OS entropy is used.

    Returns
    -------
    rng : np.random.Generator
        Generator exclusively owned by the caller.
    """
    key = algorithm.lower().replace("-", "").replace("_", "")
    if key not in BIT_GENERATORS:
        raise ValueError(
            f"Unknown random source algorithm '{algorithm}'. "
            f"Expected one of {sorted(BIT_GENERATORS)}"
        )
    return np.random.Generator(BIT_GENERATORS[key](seed))


def spawn_random_sources(
    n: int,
    algorithm: str = "pcg64",
    seed: SeedLike = None,
) -> List[np.random.Generator]:
    """Split one seed into `n` independent generators, one per worker."""
    if n <= 0:
        raise ValueError(f"n must be positive. Got {n}")
    parent = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return [make_random_source(algorithm, child) for child in parent.spawn(n)]


def coerce_random_source(
    rng: Optional[np.random.Generator],
    algorithm: str = "pcg64",
    seed: SeedLike = None,
) -> np.random.Generator:
    """Return `rng` if given, otherwise build one from `algorithm` and `seed`."""
    if rng is not None:
        if not isinstance(rng, np.random.Generator):
            raise TypeError(f"rng must be a numpy Generator. Got {type(rng).__name__}")
        return rng
    return make_random_source(algorithm, seed)
