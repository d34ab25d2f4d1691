"""
Concurvity between smooth terms.

Concurvity is the nonlinear analogue of collinearity: one smooth being
well approximated by another. For each pair of smooth terms this module
reports the largest squared canonical correlation between the spans of
their (centred) basis columns, a worst-case measure in [0, 1]. Two
smooths of the same covariate score 1.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from neurogamm.core.dataset import Dataset
from neurogamm.formula.algebra import to_unpenalized
from neurogamm.formula.terms import ModelSpec
from neurogamm.smooth.design import GAMMDesign, build_design

_RANK_TOL = 1e-8


def _orthonormal_span(B: NDArray) -> NDArray:
    """Orthonormal basis of the column space of the centred columns of B."""
    B = B - B.mean(axis=0, keepdims=True)
    U, s, _ = np.linalg.svd(B, full_matrices=False)
    if s.size == 0 or s[0] == 0:
        return U[:, :0]
    return U[:, s > _RANK_TOL * s[0]]


def _term_spans(design: GAMMDesign) -> dict[str, NDArray]:
    """Smooth term label → orthonormal span of all its columns."""
    blocks: dict[str, list[NDArray]] = {}
    for comp in design.components:
        cols = [design.X[:, design.fixed_slices[comp.label]]]
        if comp.label in design.penalized:
            cols.append(design.penalized[comp.label])
        blocks.setdefault(comp.term.label, []).extend(cols)
    return {label: _orthonormal_span(np.hstack(cols)) for label, cols in blocks.items()}


def concurvity_of_design(design: GAMMDesign) -> pd.DataFrame:
    """Concurvity matrix of the smooth terms of a built design."""
    spans = _term_spans(design)
    labels = list(spans)
    m = len(labels)
    out = np.eye(m)
    for i in range(m):
        for j in range(i + 1, m):
            Qi, Qj = spans[labels[i]], spans[labels[j]]
            if Qi.shape[1] == 0 or Qj.shape[1] == 0:
                value = 0.0
            else:
                s = np.linalg.svd(Qi.T @ Qj, compute_uv=False)
                value = float(min(1.0, s[0] ** 2))
            out[i, j] = out[j, i] = value
    return pd.DataFrame(out, index=labels, columns=labels)


def concurvity(spec: ModelSpec | str, dataset: Dataset) -> pd.DataFrame:
    """Pairwise worst-case concurvity of the smooth terms of ``spec``.

    Args:
        spec: Model specification (or formula text).
        dataset: Data on which the bases are evaluated.

    Returns:
        Symmetric DataFrame indexed by smooth term label, ones on the
        diagonal.

    Examples:
        >>> concurvity("y ~ s(age) + s(icv)", ds)
                  s(age)    s(icv)
        s(age)  1.000000  0.031...
        s(icv)  0.031...  1.000000
    """
    if isinstance(spec, str):
        spec = ModelSpec.parse(spec)
    return concurvity_of_design(build_design(to_unpenalized(spec), dataset))
