import numpy as np


def trial_seed(base_seed, index):
    """Seed for one trial or replicate, derived from the base seed and its index."""
    return int(np.random.SeedSequence([int(base_seed), int(index)]).generate_state(1)[0])


def trial_rng(base_seed, index):
    """Generator for one trial or replicate, independent of execution order."""
    return np.random.default_rng(trial_seed(base_seed, index))


def balanced_indices(labels, rng, candidates=None):
    """All positive positions plus an equal-size negative sample without replacement.

    When `candidates` is given, negatives are drawn only from those positions.
    """
    labels = np.asarray(labels)
    pos = np.flatnonzero(labels == 1)
    neg = np.flatnonzero(labels == 0)
    if candidates is not None:
        neg = np.intersect1d(neg, candidates)
    if len(neg) < len(pos):
        raise ValueError(
            f"Cannot balance {len(pos)} positives with {len(neg)} negatives."
        )
    neg_sample = rng.choice(neg, size=len(pos), replace=False)
    return np.sort(np.concatenate([pos, neg_sample]))


def train_test_split_indices(rows, n_train, rng):
    """Split positions into disjoint train/test sets; their union is `rows`."""
    rows = np.asarray(rows)
    if not 0 < n_train <= len(rows):
        raise ValueError(f"n_train={n_train} must be in [1, {len(rows)}]")
    train = np.sort(rng.choice(rows, size=n_train, replace=False))
    test = np.setdiff1d(rows, train, assume_unique=True)
    return train, test


def bootstrap_indices(n, rng):
    """n positions drawn with replacement."""
    return rng.integers(0, n, size=n)
