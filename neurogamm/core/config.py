"""
Explicit configuration objects.

Statistical settings and plot settings are kept apart and passed to
every component that needs them; nothing reads module-level state.
Both are frozen: derive variants with dataclasses.replace().

    cfg = StatsConfig(sim_count=500, seed=7)
    cfg = dataclasses.replace(cfg, bootstrap=False)
"""

from __future__ import annotations

from dataclasses import dataclass

from neurogamm.core.exceptions import ValidationError
from neurogamm.core.validation import check_positive_int, check_probability


@dataclass(frozen=True)
class StatsConfig:
    """
    Statistical settings for a model-testing task.

    Attributes:
        alpha: Significance level for model selection and the
            derivative-free interaction test.
        bonferroni_divisor: Number of tests the interaction threshold is
            corrected for (threshold = alpha / bonferroni_divisor).
        model_test: Whether the last term is tested at all.
        bootstrap: Test the last term with the parametric bootstrap LRT
            (otherwise the fitted smooth table is read).
        sim_count: Number of bootstrap replicates.
        seed: Task-level seed; replicate seeds are spawned from it.
        n_jobs: Worker threads for bootstrap replicates.
        grid_size: Derivative grid resolution.
        ci_multiplier: Half-width of confidence intervals in standard
            errors (2.0 is the usual normal approximation).
        inference_unpenalized: Fit inference models with fixed-df smooths.
        tol: Optimizer tolerance for mixed model fits.
        max_iter: Maximum optimizer iterations for mixed model fits.
    """
    alpha: float = 0.05
    bonferroni_divisor: int = 4
    model_test: bool = True
    bootstrap: bool = True
    sim_count: int = 1000
    seed: int | None = None
    n_jobs: int = 1
    grid_size: int = 1000
    ci_multiplier: float = 2.0
    inference_unpenalized: bool = True
    tol: float = 1e-8
    max_iter: int = 200

    def __post_init__(self):
        check_probability(self.alpha, 'alpha')
        check_positive_int(self.bonferroni_divisor, 'bonferroni_divisor')
        check_positive_int(self.sim_count, 'sim_count')
        check_positive_int(self.n_jobs, 'n_jobs')
        check_positive_int(self.grid_size, 'grid_size', minimum=2)
        check_positive_int(self.max_iter, 'max_iter')
        if self.ci_multiplier <= 0:
            raise ValidationError(
                f"ci_multiplier: must be positive, got {self.ci_multiplier}"
            )
        if self.tol <= 0:
            raise ValidationError(f"tol: must be positive, got {self.tol}")

    @property
    def interaction_threshold(self) -> float:
        """Bonferroni-adjusted threshold for the smooth-table interaction test."""
        return self.alpha / self.bonferroni_divisor


@dataclass(frozen=True)
class PlotConfig:
    """
    Rendering settings for neurogamm.visualization.

    Attributes:
        font_size: Base font size for labels and ticks.
        figsize: Figure size in inches.
        dpi: Resolution of written image files.
        line_width: Width of prediction curves.
        band_alpha: Opacity of confidence bands.
        raw_alpha: Opacity of raw-trajectory lines and points.
        palette: Colours cycled over factor levels.
        significance_cmap: Colormap of the derivative significance bar.
        point_size: Marker size for raw observations.
    """
    font_size: float = 12.0
    figsize: tuple[float, float] = (6.0, 4.5)
    dpi: int = 300
    line_width: float = 2.0
    band_alpha: float = 0.25
    raw_alpha: float = 0.35
    palette: tuple[str, ...] = (
        '#1b9e77', '#d95f02', '#7570b3', '#e7298a', '#66a61e', '#e6ab02',
    )
    significance_cmap: str = 'RdBu_r'
    point_size: float = 12.0

    def __post_init__(self):
        if self.font_size <= 0:
            raise ValidationError(f"font_size: must be positive, got {self.font_size}")
        check_positive_int(self.dpi, 'dpi')
        if not self.palette:
            raise ValidationError("palette: needs at least one colour")
        for name in ('band_alpha', 'raw_alpha'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValidationError(f"{name}: must be in [0, 1], got {value}")
