"""
pytest configuration and shared fixtures.

Synthetic longitudinal data: subjects observed at several visits, with a
subject-level random intercept, a sex effect and a known age trajectory.
"""

import matplotlib

matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

from neurogamm.core.dataset import Dataset


def simulate_longitudinal(
    rng,
    trajectory,
    *,
    n_subjects=40,
    n_visits=4,
    sex_effect=0.5,
    subject_sd=1.0,
    noise_sd=0.3,
    sex_slope=0.0,
):
    """Dataset with columns y, age, sex, subject, excluded.

    y = 10 + sex_effect * [sex == M] + trajectory(age)
        + sex_slope * [sex == M] * (age - 14) + b_subject + noise
    """
    n = n_subjects * n_visits
    subject = np.repeat([f"S{i:03d}" for i in range(n_subjects)], n_visits)
    baseline = np.repeat(rng.uniform(8.0, 16.0, n_subjects), n_visits)
    age = baseline + np.tile(np.arange(n_visits) * 1.5, n_subjects) + rng.uniform(0, 0.2, n)
    sex_subject = rng.choice(['F', 'M'], size=n_subjects)
    sex = np.repeat(sex_subject, n_visits)
    male = (sex == 'M').astype(float)
    b = np.repeat(rng.normal(0.0, subject_sd, n_subjects), n_visits)
    y = (10.0 + sex_effect * male + trajectory(age)
         + sex_slope * male * (age - 14.0) + b + rng.normal(0.0, noise_sd, n))
    frame = pd.DataFrame({
        'y': y,
        'age': age,
        'sex': pd.Categorical(sex, categories=['F', 'M']),
        'subject': subject,
        'excluded': np.zeros(n, dtype=bool),
    })
    return Dataset.from_dataframe(frame)


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def nonlinear_data(rng):
    """Strongly nonlinear age trajectory."""
    return simulate_longitudinal(rng, lambda a: 2.0 * np.sin((a - 8.0) / 3.0))


@pytest.fixture
def linear_data(rng):
    """Linear age trajectory with slope 0.3."""
    return simulate_longitudinal(rng, lambda a: 0.3 * a)


@pytest.fixture
def flat_data(rng):
    """No age effect at all."""
    return simulate_longitudinal(rng, lambda a: np.zeros_like(a))


@pytest.fixture
def make_longitudinal():
    """Factory for custom synthetic datasets (see simulate_longitudinal)."""
    return simulate_longitudinal
