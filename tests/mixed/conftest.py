"""
Shared fixtures for mixed model tests.

Datasets with known structure: a random intercept model, and the same
model with an extra penalized block carrying a smooth signal.
"""

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(2024)


@pytest.fixture
def random_intercept_simple(rng):
    """Simple random intercept dataset: y ~ x + (1 | group).

    20 groups, 10 observations each = 200 observations.
    """
    n_groups = 20
    n_per_group = 10
    n = n_groups * n_per_group

    beta0 = 5.0
    beta1 = 2.0
    sigma_group = 2.0
    sigma_resid = 1.0

    group = np.repeat(np.arange(n_groups), n_per_group)
    x = rng.normal(0.0, 1.0, n)
    u = rng.normal(0.0, sigma_group, n_groups)
    y = beta0 + beta1 * x + u[group] + rng.normal(0.0, sigma_resid, n)

    return {
        'y': y, 'X': np.column_stack([np.ones(n), x]), 'group': group,
        'n': n, 'n_groups': n_groups,
        'beta0': beta0, 'beta1': beta1,
        'sigma_group': sigma_group, 'sigma_resid': sigma_resid,
    }


@pytest.fixture
def penalized_block_data(random_intercept_simple, rng):
    """Random intercept data plus a wiggly signal in 6 penalized columns."""
    d = dict(random_intercept_simple)
    n = d['n']
    t = rng.uniform(0.0, 1.0, n)
    # Centred Fourier columns: a stand-in for a range-space smooth basis
    freqs = np.arange(1, 4)
    Zp = np.column_stack(
        [np.sin(2 * np.pi * f * t) for f in freqs]
        + [np.cos(2 * np.pi * f * t) for f in freqs]
    )
    Zp -= Zp.mean(axis=0)
    d['y'] = d['y'] + 1.5 * np.sin(2 * np.pi * t)
    d['Zp'] = Zp
    d['t'] = t
    return d
