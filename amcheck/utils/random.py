"""Random number utilities."""

import numpy as np
from typing import Optional, Set, List


def make_generator(seed: Optional[int] = None) -> np.random.Generator:
    """Create an independent random generator."""
    return np.random.default_rng(seed)


def random_candidate_id(rng: np.random.Generator, n_bits: int) -> int:
    """
    Draw a uniform integer in [0, 2**n_bits).

    Works for any number of bits, beyond the int64 range of numpy.
    """
    if n_bits == 0:
        return 0
    n_bytes = (n_bits + 7) // 8
    value = int.from_bytes(rng.bytes(n_bytes), 'little')
    return value & ((1 << n_bits) - 1)


def draw_unique_candidates(
    rng: np.random.Generator,
    n_bits: int,
    count: int,
    seen: Set[int]
) -> List[int]:
    """
    Draw up to ``count`` candidate ids that are not in ``seen``.
    
    Rejection sampling against the ``seen`` set, which is updated in place.
    Fewer ids are returned once the space is exhausted.
    
    Args:
        rng: Random generator
        n_bits: Number of magnetic atoms (bits per candidate)
        count: Number of ids requested
        seen: Ids already drawn in this run
        
    Returns:
        List of new, distinct candidate ids
    """
    total = 1 << n_bits
    remaining = total - len(seen)
    count = min(count, remaining)
    if count <= 0:
        return []
    
    # Dense regime: rejection would stall, enumerate the complement instead
    if remaining <= 4 * count and total <= 1 << 24:
        pool = np.array([c for c in range(total) if c not in seen], dtype=np.int64)
        chosen = rng.choice(pool, size=count, replace=False)
        batch = [int(c) for c in chosen]
        seen.update(batch)
        return batch
    
    batch = []
    while len(batch) < count:
        candidate = random_candidate_id(rng, n_bits)
        if candidate not in seen:
            seen.add(candidate)
            batch.append(candidate)
    
    return batch
