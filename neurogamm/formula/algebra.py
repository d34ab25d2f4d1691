"""
Structural rewrites of model specifications.

None of these functions fit anything; they map ModelSpec to ModelSpec.

    drop_last_term            - the nested model used to test the last term
    to_unpenalized            - fixed-df smooths for stable p-values
    to_penalized_for_plotting - penalized smooths for display curves
"""

from __future__ import annotations

from dataclasses import replace

from neurogamm.core.exceptions import InvalidSpecError, NonNestedModelError
from neurogamm.formula.terms import ModelSpec, Term, TermKind


def drop_last_term(spec: ModelSpec) -> ModelSpec:
    """Return ``spec`` without its last term (same response, same order).

    Raises:
        InvalidSpecError: If ``spec`` has no terms.
    """
    if not spec.terms:
        raise InvalidSpecError(
            f"Cannot drop a term from a model with no terms: {spec}", spec=str(spec)
        )
    return spec.with_terms(spec.terms[:-1])


def to_unpenalized(spec: ModelSpec) -> ModelSpec:
    """Force fx=TRUE on every smooth term; parametric terms are untouched."""
    return spec.with_terms(t.with_fx(True) for t in spec.terms)


def to_penalized_for_plotting(spec: ModelSpec) -> ModelSpec:
    """Penalized variant of ``spec`` used for display fits.

    Every smooth term has fx cleared. An interaction-only basis whose
    main effects are missing from the model is promoted to its full basis
    so the plotted curve carries the main effect:

        ti(a, b) with no s(a), s(b) or te(a, b) present  ->  te(a, b)
        s(x, by=f) difference smooth without s(x)        ->  per-level s(x, by=f)

    The number, order and variables of the terms are preserved.
    """
    main_smooths = {t.variables[0] for t in spec.terms if t.kind is TermKind.SMOOTH}
    full_tensors = {
        frozenset(t.variables) for t in spec.terms
        if t.kind is TermKind.TENSOR and not t.interaction_only
    }

    rewritten: list[Term] = []
    for term in spec.terms:
        term = term.with_fx(False)
        if term.kind is TermKind.TENSOR and term.interaction_only:
            covered = (any(v in main_smooths for v in term.variables)
                       or frozenset(term.variables) in full_tensors)
            if not covered:
                term = replace(term, interaction_only=False)
        elif term.kind is TermKind.SMOOTH_BY and term.interaction_only is not False:
            if term.variables[0] not in main_smooths:
                term = replace(term, interaction_only=False)
        rewritten.append(term)
    return spec.with_terms(rewritten)


def check_nested(full: ModelSpec, reduced: ModelSpec) -> None:
    """Verify ``reduced`` is exactly ``full`` minus its last term.

    Nesting is checked structurally only.

    Raises:
        NonNestedModelError: If the structural check fails.
    """
    if (not full.terms
            or reduced.response != full.response
            or reduced.terms != full.terms[:-1]):
        raise NonNestedModelError(
            f"Reduced model '{reduced}' is not the full model '{full}' "
            f"without its last term",
            full=str(full),
            reduced=str(reduced),
        )


def term_under_test(spec: ModelSpec, variable: str) -> Term:
    """Return the last term after checking it involves ``variable``.

    Raises:
        InvalidSpecError: If ``variable`` is absent from the formula, or the
            term involving it is not the last term.
    """
    if variable not in spec.variables():
        raise InvalidSpecError(
            f"Interaction variable '{variable}' does not appear in '{spec}'",
            spec=str(spec),
        )
    last = spec.last_term
    if not (last.is_smooth and last.involves(variable)):
        raise InvalidSpecError(
            f"The smooth term involving '{variable}' must be the last term of "
            f"'{spec}' (last term is {last})",
            spec=str(spec),
        )
    return last


def move_term_last(spec: ModelSpec, index: int) -> ModelSpec:
    """Reorder ``spec`` so that ``terms[index]`` is tested (placed last)."""
    if not -spec.n_terms <= index < spec.n_terms:
        raise InvalidSpecError(
            f"Term index {index} out of range for {spec.n_terms} terms",
            spec=str(spec),
        )
    terms = list(spec.terms)
    moved = terms.pop(index)
    return spec.with_terms(terms + [moved])
