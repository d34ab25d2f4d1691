"""
Solution wrapper for linear mixed models.

LMMSolution wraps Result[LMMParams] and provides R-style summary output,
property accessors, and simulation from the fitted model (the data
generator of the parametric bootstrap).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from neurogamm.core.result import Result
from neurogamm.mixed._common import LMMParams, VarCompSummary

if TYPE_CHECKING:
    from neurogamm.mixed._random_effects import RandomEffectSpec
    from neurogamm.mixed.design import MixedDesign


def _significance_stars(p: float) -> str:
    """Return significance stars like R."""
    if not np.isfinite(p):
        return ' '
    if p < 0.001:
        return '***'
    elif p < 0.01:
        return '**'
    elif p < 0.05:
        return '*'
    elif p < 0.1:
        return '.'
    return ' '


def _format_pvalue(p: float) -> str:
    """Format p-value like R."""
    if not np.isfinite(p):
        return 'NA'
    if p < 2e-16:
        return '< 2e-16'
    elif p < 0.001:
        return f'{p:.2e}'
    return f'{p:.4f}'


@dataclass(frozen=True)
class LMMSolution:
    """Fitted linear mixed model."""
    _result: Result[LMMParams]
    _design: 'MixedDesign'
    _specs: tuple['RandomEffectSpec', ...]

    @property
    def params(self) -> LMMParams:
        return self._result.params

    @property
    def design(self) -> 'MixedDesign':
        return self._design

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    # --- Fixed effects ---

    @property
    def coefficients(self) -> NDArray:
        """Fixed effect estimates β̂."""
        return self.params.coefficients

    @property
    def fixef(self) -> dict[str, float]:
        """Fixed effects as name → value dict."""
        return dict(zip(self.params.coefficient_names, self.params.coefficients))

    @property
    def se(self) -> NDArray:
        return self.params.se

    @property
    def p_values(self) -> NDArray:
        return self.params.p_values

    @property
    def vcov(self) -> NDArray | None:
        """Covariance of β̂ (p, p)."""
        if self.params.vcov_joint is None:
            return None
        p = len(self.params.coefficients)
        return self.params.vcov_joint[:p, :p]

    # --- Random effects ---

    @property
    def ranef(self) -> dict[str, NDArray]:
        """Conditional modes per block."""
        return self.params.random_effects

    @property
    def var_components(self) -> tuple[VarCompSummary, ...]:
        return self.params.var_components

    @property
    def icc(self) -> dict[str, float]:
        """Intraclass correlation of each grouping factor."""
        sigma_sq = self.params.residual_variance
        return {
            vc.group: vc.variance / (vc.variance + sigma_sq)
            for vc in self.params.var_components if vc.kind == 'grouping'
        }

    # --- Model fit ---

    @property
    def log_likelihood(self) -> float:
        return self.params.log_likelihood

    @property
    def aic(self) -> float:
        return self.params.aic

    @property
    def bic(self) -> float:
        return self.params.bic

    @property
    def fitted_values(self) -> NDArray:
        return self.params.fitted_values

    @property
    def residuals(self) -> NDArray:
        return self.params.residuals

    @property
    def converged(self) -> bool:
        return self.params.converged

    # --- Simulation ---

    def simulate(self, rng: np.random.Generator) -> NDArray:
        """Draw one response vector from the fitted model.

        y* = Xβ̂ + Σ_k Z_k b*_k + ε*, with b*_k ~ N(0, σ̂²θ̂_k²) and
        ε* ~ N(0, σ̂²). Conditional modes are not reused.
        """
        sigma = self.params.residual_std
        y_sim = self._design.X @ self.params.coefficients
        for k, spec in enumerate(self._specs):
            sd = sigma * self.params.theta[k]
            if sd > 0:
                y_sim = y_sim + spec.Z_block @ rng.normal(0.0, sd, size=spec.n_levels)
        return y_sim + rng.normal(0.0, sigma, size=self._design.n)

    # --- Summary ---

    def summary(self) -> str:
        """R-style summary in the manner of lme4::summary(lmer(...))."""
        params = self.params
        method = 'REML' if params.reml else 'ML'

        lines = [f"Linear mixed model fit by {method}", ""]

        lines.append("Random effects:")
        lines.append(f" {'Groups':<20s} {'Variance':>10s} {'Std.Dev.':>10s}")
        for vc in params.var_components:
            lines.append(f" {vc.group:<20s} {vc.variance:10.4f} {vc.std_dev:10.4f}")
        lines.append(
            f" {'Residual':<20s} {params.residual_variance:10.4f} "
            f"{params.residual_std:10.4f}"
        )
        lines.append("")

        group_parts = ', '.join(f'{name}: {n}' for name, n in params.n_groups.items())
        lines.append(f"Number of obs: {params.n_obs}, groups: {group_parts}")
        lines.append("")

        lines.append("Fixed effects:")
        lines.append(
            f" {'':>15s} {'Estimate':>10s} {'Std. Error':>10s} "
            f"{'t value':>10s} {'Pr(>|t|)':>10s}"
        )
        for i, name in enumerate(params.coefficient_names):
            lines.append(
                f" {name:>15s} {params.coefficients[i]:10.4f} "
                f"{params.se[i]:10.4f} {params.t_values[i]:10.3f} "
                f"{_format_pvalue(params.p_values[i]):>10s} "
                f"{_significance_stars(params.p_values[i])}"
            )
        lines.append("---")
        lines.append("Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")
        lines.append("")
        lines.append(f"{method} criterion at convergence: {-2 * params.log_likelihood:.1f}")
        lines.append(f"AIC: {params.aic:.1f}, BIC: {params.bic:.1f}")
        return '\n'.join(lines)

    def __repr__(self) -> str:
        method = 'REML' if self.params.reml else 'ML'
        return (
            f"LMMSolution({method}, "
            f"n={self.params.n_obs}, "
            f"fixed={len(self.params.coefficients)}, "
            f"blocks={len(self.params.var_components)})"
        )
