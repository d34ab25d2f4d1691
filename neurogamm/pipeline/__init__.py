"""
Model-testing tasks.

Usage:
    from neurogamm.pipeline import run_model_task

    task = run_model_task("volume ~ sex + s(age, k=4)", ds, 'subject',
                          config=StatsConfig(sim_count=500, seed=1),
                          derivative=True)
    task.spec, task.bic, task.derivative.intervals
"""

from neurogamm.pipeline._common import PipelineState, TaskResult
from neurogamm.pipeline.solvers import run_model_task

__all__ = [
    "PipelineState",
    "TaskResult",
    "run_model_task",
]
