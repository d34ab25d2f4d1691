"""
Model specifications and their structural algebra.

Public API:
    Term, TermKind, ModelSpec   - formula structure (parse / render)
    drop_last_term()            - nested model without the tested term
    to_unpenalized()            - fixed-df smooths for inference
    to_penalized_for_plotting() - penalized smooths for display
    check_nested(), term_under_test(), move_term_last()
"""

from neurogamm.formula.terms import Term, TermKind, ModelSpec
from neurogamm.formula.algebra import (
    drop_last_term,
    to_unpenalized,
    to_penalized_for_plotting,
    check_nested,
    term_under_test,
    move_term_last,
)

__all__ = [
    "Term",
    "TermKind",
    "ModelSpec",
    "drop_last_term",
    "to_unpenalized",
    "to_penalized_for_plotting",
    "check_nested",
    "term_under_test",
    "move_term_last",
]
