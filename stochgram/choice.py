import random
from typing import Optional, Sequence

PROB_EPSILON = 1e-9

def pchoose(ps: Sequence[float], rng: Optional[random.Random] = None) -> int:
    """
    Chooses an index into ps at random according to the probability of each entry.

    The probabilities are expected to be normalized (sum <= 1). One value is
    drawn in [0, 1) and the index of the first entry whose running sum exceeds
    it is returned. When the draw lands in the residual mass, len(ps) is
    returned: callers treat that as "nothing selected".

    Works the same for double or single precision values (numpy float32 items
    included); the running sum is kept as a Python float.
    """
    pv = (rng or random).random()
    total = 0.0
    for i, p in enumerate(ps):
        total += float(p)
        if pv < total:
            return i
    return len(ps)

def choose_item(ps: Sequence[float], rng: Optional[random.Random] = None) -> Optional[int]:
    """
    pchoose for item selection: returns None for the "nothing" outcome.

    A vector that sums to 1 up to float rounding never yields None; the
    rounding residue goes to the last entry.
    """
    opt = pchoose(ps, rng)
    if opt < len(ps):
        return opt
    if ps and sum(float(p) for p in ps) >= 1.0 - PROB_EPSILON:
        return len(ps) - 1
    return None

def normalize_percents(weights: Sequence[Optional[float]]) -> Sequence[float]:
    """
    Turns per-item percentages into a probability vector.

    Items with weight None share whatever remains of 100 after the explicit
    weights, split evenly. With no unspecified items the remainder is left
    unassigned and becomes the "nothing" outcome of pchoose.
    """
    explicit = sum(w for w in weights if w is not None)
    n_free = sum(1 for w in weights if w is None)
    share = max(100.0 - explicit, 0.0) / n_free if n_free else 0.0
    return tuple((share if w is None else w) / 100.0 for w in weights)
