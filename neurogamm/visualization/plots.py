"""
Figures of fitted smooths, derivative curves and concurvity.

Every function takes a PlotConfig and returns the matplotlib Figure.
Passing ``path`` writes the image (dpi and bbox from the config) and
closes the figure. No rcParams are modified.
"""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.figure import Figure

from neurogamm.core.config import PlotConfig
from neurogamm.core.dataset import Dataset, ExclusionRule
from neurogamm.core.exceptions import ValidationError
from neurogamm.derivatives._common import DerivativeCurve

CONTINUOUS_BY_QUANTILES = (0.1, 0.5, 0.9)
_GREY = '0.6'


def _finish(fig: Figure, path: str | Path | None, config: PlotConfig) -> Figure:
    if path is not None:
        fig.savefig(path, dpi=config.dpi, bbox_inches='tight')
        plt.close(fig)
    return fig


def _style_axis(ax, config: PlotConfig, xlabel: str, ylabel: str) -> None:
    ax.set_xlabel(xlabel, fontsize=config.font_size)
    ax.set_ylabel(ylabel, fontsize=config.font_size)
    ax.tick_params(labelsize=config.font_size * 0.85)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)


def _curve_settings(fitted, dataset: Dataset, by: str | None) -> list[tuple[str, dict]]:
    """(legend label, reference-frame overrides) per curve to draw."""
    if by is None:
        return [('', {})]
    if by not in fitted.spec.variables():
        raise ValidationError(f"'{by}' is not a covariate of '{fitted.spec}'")
    kind = dataset.covariate_kind(by)
    if kind.is_factor:
        return [(f"{by} = {lvl}", {by: lvl}) for lvl in dataset.levels(by)]
    values = np.quantile(dataset.numeric(by), CONTINUOUS_BY_QUANTILES)
    return [(f"{by} = {v:.3g}", {by: float(v)}) for v in values]


def _draw_raw(ax, fitted, dataset: Dataset, smooth_var: str, *, group_var,
              exclude, show_excluded, config: PlotConfig, colour_of) -> None:
    frame = dataset.frame
    response = fitted.spec.response
    excluded = dataset.exclusion_mask(exclude)
    kept = frame.loc[~excluded]

    colours = [colour_of(row) for _, row in kept.iterrows()]
    if group_var is not None:
        for _, traj in kept.groupby(group_var, sort=False):
            traj = traj.sort_values(smooth_var)
            ax.plot(traj[smooth_var], traj[response], color=colour_of(traj.iloc[0]),
                    alpha=config.raw_alpha, linewidth=config.line_width * 0.4)
    ax.scatter(kept[smooth_var], kept[response], c=colours, s=config.point_size,
               alpha=config.raw_alpha, linewidths=0)
    if show_excluded and excluded.any():
        dropped = frame.loc[excluded]
        ax.scatter(dropped[smooth_var], dropped[response], marker='x', color=_GREY,
                   s=config.point_size, alpha=config.raw_alpha, label='excluded')


def plot_smooth(
    fitted,
    dataset: Dataset,
    smooth_var: str,
    *,
    group_var: str | None = None,
    by: str | None = None,
    derivative: DerivativeCurve | None = None,
    raw: bool = True,
    exclude: ExclusionRule = None,
    show_excluded: bool = True,
    plot_config: PlotConfig = PlotConfig(),
    ci_multiplier: float = 2.0,
    grid_size: int = 200,
    path: str | Path | None = None,
) -> Figure:
    """
    Population-level fitted curve of ``smooth_var`` with its confidence band.

    Args:
        fitted: GAMMSolution (usually the plotting fit of a task).
        dataset: Data the model was fitted on, for the raw overlay.
        smooth_var: Smooth covariate on the x axis.
        group_var: Draw one raw trajectory per group (spaghetti plot).
        by: One curve per level of a factor, or at the 10/50/90%
            quantiles of a continuous covariate.
        derivative: Adds a colour bar of the significant derivative
            beneath the curve.
        raw: Overlay observed data.
        exclude: Exclusion rule used for the fit.
        show_excluded: Mark excluded rows in grey.
        plot_config: Rendering settings.
        ci_multiplier: Band half-width in standard errors.
        grid_size: Points on the prediction grid.
        path: Write the figure to this file and close it.
    """
    config = plot_config
    lo, hi = fitted.training_range(smooth_var)
    x = np.linspace(lo, hi, grid_size)
    curves = _curve_settings(fitted, dataset, by)
    palette = config.palette

    if derivative is not None:
        fig, (ax, bar_ax) = plt.subplots(
            2, 1, figsize=config.figsize, sharex=True,
            gridspec_kw={'height_ratios': [12, 1], 'hspace': 0.05},
        )
    else:
        fig, ax = plt.subplots(figsize=config.figsize)
        bar_ax = None

    if raw:
        if by is not None and dataset.covariate_kind(by).is_factor:
            index = {lvl: i for i, lvl in enumerate(dataset.levels(by))}

            def colour_of(row):
                return palette[index[row[by]] % len(palette)]
        else:
            def colour_of(row):
                return _GREY
        _draw_raw(ax, fitted, dataset, smooth_var, group_var=group_var,
                  exclude=exclude, show_excluded=show_excluded, config=config,
                  colour_of=colour_of)

    for i, (label, overrides) in enumerate(curves):
        colour = palette[i % len(palette)]
        frame = fitted.reference_frame(grid_size, **{smooth_var: x}, **overrides)
        estimate, se = fitted.predict(frame)
        ax.fill_between(x, estimate - ci_multiplier * se, estimate + ci_multiplier * se,
                        color=colour, alpha=config.band_alpha, linewidth=0)
        ax.plot(x, estimate, color=colour, linewidth=config.line_width,
                label=label or None)

    _style_axis(ax, config, '' if bar_ax is not None else smooth_var, fitted.spec.response)
    if by is not None or (raw and show_excluded and dataset.exclusion_mask(exclude).any()):
        ax.legend(fontsize=config.font_size * 0.8, frameon=False)

    if bar_ax is not None:
        values = derivative.masked_derivative[np.newaxis, :]
        limit = float(np.max(np.abs(values))) or 1.0
        bar_ax.imshow(values, aspect='auto', cmap=config.significance_cmap,
                      vmin=-limit, vmax=limit,
                      extent=(derivative.x[0], derivative.x[-1], 0, 1))
        bar_ax.set_yticks([])
        _style_axis(bar_ax, config, smooth_var, '')

    return _finish(fig, path, config)


def plot_derivative(
    curve: DerivativeCurve,
    *,
    plot_config: PlotConfig = PlotConfig(),
    path: str | Path | None = None,
) -> Figure:
    """Derivative with its interval; significant regions shaded."""
    config = plot_config
    fig, ax = plt.subplots(figsize=config.figsize)
    colour = config.palette[0]
    ax.fill_between(curve.x, curve.lower, curve.upper, color=colour,
                    alpha=config.band_alpha, linewidth=0)
    ax.plot(curve.x, curve.derivative, color=colour, linewidth=config.line_width)
    ax.axhline(0.0, color='k', linewidth=config.line_width * 0.4, linestyle='--')
    for start, end in curve.intervals:
        ax.axvspan(start, end, color=_GREY, alpha=config.band_alpha * 0.6, linewidth=0)
    ylabel = f"d/d{curve.variable}"
    if curve.by_level is not None:
        ylabel += f" ({curve.by_level})"
    _style_axis(ax, config, curve.variable, ylabel)
    return _finish(fig, path, config)


def plot_concurvity(
    matrix: pd.DataFrame,
    *,
    plot_config: PlotConfig = PlotConfig(),
    path: str | Path | None = None,
) -> Figure:
    """Heat map of a concurvity matrix with values annotated."""
    config = plot_config
    fig, ax = plt.subplots(figsize=config.figsize)
    image = ax.imshow(matrix.to_numpy(), vmin=0.0, vmax=1.0, cmap='viridis')
    labels = [str(c) for c in matrix.columns]
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha='right', fontsize=config.font_size * 0.85)
    ax.set_yticks(range(len(labels)))
    ax.set_yticklabels([str(i) for i in matrix.index], fontsize=config.font_size * 0.85)
    for i in range(matrix.shape[0]):
        for j in range(matrix.shape[1]):
            value = matrix.iat[i, j]
            ax.text(j, i, f"{value:.2f}", ha='center', va='center',
                    color='white' if value < 0.5 else 'black',
                    fontsize=config.font_size * 0.75)
    fig.colorbar(image, ax=ax)
    return _finish(fig, path, config)
