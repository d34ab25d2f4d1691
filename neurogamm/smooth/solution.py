"""
Solution wrapper for additive mixed models.

GAMMSolution is the fitted model handed between pipeline stages: it
reports coefficient and smooth tables, predicts at new covariate values
with Bayesian standard errors, and exports its tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from neurogamm.core.dataset import Dataset
from neurogamm.core.exceptions import ValidationError
from neurogamm.core.result import Result
from neurogamm.formula.terms import ModelSpec
from neurogamm.mixed.solution import _format_pvalue, _significance_stars
from neurogamm.smooth._common import GAMMParams

if TYPE_CHECKING:
    from neurogamm.smooth.design import GAMMDesign


@dataclass(frozen=True)
class GAMMSolution:
    """Fitted additive mixed model."""
    _result: Result[GAMMParams]
    _design: 'GAMMDesign'
    _reference: dict[str, object]
    _ranges: dict[str, tuple[float, float]]

    @property
    def params(self) -> GAMMParams:
        return self._result.params

    @property
    def info(self) -> dict:
        return self._result.info

    @property
    def design(self) -> 'GAMMDesign':
        return self._design

    @property
    def spec(self) -> ModelSpec:
        """The specification that was actually fitted."""
        return self._design.spec

    @property
    def group_var(self) -> str:
        return self._result.info['group_var']

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    # --- Coefficients ---

    @property
    def coefficients(self) -> NDArray:
        """[β, b_smooth], aligned with prediction_matrix() columns."""
        return self.params.coefficients

    @property
    def vcov(self) -> NDArray:
        return self.params.vcov

    @property
    def fixed_matrix(self) -> NDArray:
        """Fixed-effects design matrix on the training rows."""
        return self._design.X

    @property
    def model_matrix(self) -> NDArray:
        """Fixed and penalized columns on the training rows."""
        return self._design.full_matrix()

    # --- Fit statistics ---

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
    def reml(self) -> bool:
        return self.params.reml

    @property
    def n_obs(self) -> int:
        return self.params.n_obs

    @property
    def n_groups(self) -> int:
        return self.params.n_groups[self.group_var]

    @property
    def residual_variance(self) -> float:
        return self.params.residual_variance

    @property
    def fitted_values(self) -> NDArray:
        return self.params.fitted_values

    @property
    def residuals(self) -> NDArray:
        return self.params.residuals

    @property
    def converged(self) -> bool:
        return self.params.converged

    @property
    def edf(self) -> dict[str, float]:
        return {s.label: s.edf for s in self.params.smooths}

    def training_range(self, variable: str) -> tuple[float, float]:
        """(min, max) of a smooth covariate over the fitted rows."""
        if variable not in self._ranges:
            raise ValidationError(
                f"'{variable}' is not a smooth variable of '{self.spec}'. "
                f"Smooth variables: {sorted(self._ranges)}"
            )
        return self._ranges[variable]

    # --- Prediction ---

    def reference_frame(self, n_rows: int = 1, **overrides) -> pd.DataFrame:
        """Covariates at representative values.

        Continuous covariates take their training median and factors their
        first level; keyword arguments override single columns (scalars or
        arrays of length ``n_rows``).
        """
        unknown = set(overrides) - set(self._reference)
        if unknown:
            raise ValidationError(
                f"Unknown covariate(s) {sorted(unknown)} for '{self.spec}'"
            )
        data = {v: [value] * n_rows for v, value in self._reference.items()}
        for v, value in overrides.items():
            data[v] = list(value) if np.ndim(value) else [value] * n_rows
            if len(data[v]) != n_rows:
                raise ValidationError(
                    f"Override for '{v}' has {len(data[v])} values, expected {n_rows}"
                )
        frame = pd.DataFrame(data)
        for v in self.spec.smooth_variables():
            frame[v] = frame[v].astype(np.float64)
        return frame

    def prediction_matrix(self, new_data: pd.DataFrame | Dataset) -> NDArray:
        """Columns multiplying ``coefficients`` at new covariate values."""
        frame = new_data.frame if isinstance(new_data, Dataset) else new_data
        return self._design.prediction_matrix(frame)

    def predict(self, new_data: pd.DataFrame | Dataset) -> tuple[NDArray, NDArray]:
        """Population-level predictions and their standard errors.

        Random intercepts are set to zero.

        Returns:
            (estimate, se), each of shape (n_new,).
        """
        Xp = self.prediction_matrix(new_data)
        estimate = Xp @ self.coefficients
        se = np.sqrt(np.maximum(np.einsum('ij,jk,ik->i', Xp, self.vcov, Xp), 0.0))
        return estimate, se

    # --- Tables ---

    def coefficient_table(self) -> pd.DataFrame:
        """Parametric coefficients (mgcv's p.table)."""
        rows = self.params.parametric
        return pd.DataFrame(
            {
                'estimate': [r.estimate for r in rows],
                'std_error': [r.std_error for r in rows],
                't_value': [r.t_value for r in rows],
                'p_value': [r.p_value for r in rows],
            },
            index=pd.Index([r.name for r in rows], name='term'),
        )

    def smooth_table(self) -> pd.DataFrame:
        """Approximate significance of smooth terms (mgcv's s.table)."""
        rows = self.params.smooths
        return pd.DataFrame(
            {
                'edf': [r.edf for r in rows],
                'ref_df': [r.ref_df for r in rows],
                'F': [r.f_value for r in rows],
                'p_value': [r.p_value for r in rows],
            },
            index=pd.Index([r.label for r in rows], name='term'),
        )

    def to_csv(self, path: str | Path) -> Path:
        """Write both tables to one CSV file, one row per term."""
        p_table = self.coefficient_table().assign(kind='parametric')
        s_table = self.smooth_table().assign(kind='smooth')
        table = pd.concat([p_table, s_table], axis=0, sort=False)
        table.insert(0, 'formula', str(self.spec))
        path = Path(path)
        table.to_csv(path)
        return path

    def concurvity(self) -> pd.DataFrame:
        """Pairwise worst-case concurvity between the smooth terms."""
        from neurogamm.smooth.concurvity import concurvity_of_design
        return concurvity_of_design(self._design)

    # --- Summary ---

    def summary(self) -> str:
        """R-style summary in the manner of summary(gamm4(...)$gam)."""
        params = self.params
        method = 'REML' if params.reml else 'ML'
        lines = [
            f"Additive mixed model fit by {method}",
            "",
            f"Formula: {self.spec}",
            f"Random intercept: {self.group_var} ({self.n_groups} groups)",
            "",
            "Parametric coefficients:",
            f" {'':>15s} {'Estimate':>10s} {'Std. Error':>10s} "
            f"{'t value':>10s} {'Pr(>|t|)':>10s}",
        ]
        for r in params.parametric:
            lines.append(
                f" {r.name:>15s} {r.estimate:10.4f} {r.std_error:10.4f} "
                f"{r.t_value:10.3f} {_format_pvalue(r.p_value):>10s} "
                f"{_significance_stars(r.p_value)}"
            )
        if params.smooths:
            lines.append("")
            lines.append("Approximate significance of smooth terms:")
            lines.append(
                f" {'':>15s} {'edf':>8s} {'Ref.df':>8s} {'F':>10s} {'p-value':>10s}"
            )
            for s in params.smooths:
                lines.append(
                    f" {s.label:>15s} {s.edf:8.3f} {s.ref_df:8.0f} {s.f_value:10.3f} "
                    f"{_format_pvalue(s.p_value):>10s} {_significance_stars(s.p_value)}"
                )
        lines.append("---")
        lines.append("Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")
        lines.append("")
        lines.append("Variance components:")
        for vc in params.var_components:
            lines.append(f" {vc.group:<20s} {vc.variance:10.4g} ({vc.kind})")
        lines.append(f" {'Residual':<20s} {params.residual_variance:10.4g}")
        lines.append("")
        lines.append(
            f"n = {params.n_obs}, edf = {params.edf_total:.2f}, "
            f"logLik = {params.log_likelihood:.2f}, AIC = {params.aic:.1f}, "
            f"BIC = {params.bic:.1f}"
        )
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return (
            f"GAMMSolution('{self.spec}', "
            f"{'REML' if self.params.reml else 'ML'}, n={self.params.n_obs})"
        )
