"""
Figures for fitted additive mixed models.

Usage:
    from neurogamm.visualization import plot_smooth

    plot_smooth(task.plotting_fit, ds, 'age', group_var='subject',
                by='sex', derivative=task.derivative, path='age.png')
"""

from neurogamm.visualization.plots import plot_concurvity, plot_derivative, plot_smooth

__all__ = [
    "plot_smooth",
    "plot_derivative",
    "plot_concurvity",
]
