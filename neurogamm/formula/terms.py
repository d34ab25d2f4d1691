"""
Structural model specifications.

A ModelSpec is a response name plus an ordered tuple of Terms. Formula
text is rendered from (and parsed into) this structure; every rewrite
works on Terms, never on the text.

    >>> spec = ModelSpec.parse("volume ~ sex + s(age, k=4)")
    >>> spec.terms[-1]
    Term(kind=<TermKind.SMOOTH: 'smooth'>, variables=('age',), k=4, ...)
    >>> str(spec)
    'volume ~ sex + s(age, k=4)'
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from neurogamm.core.exceptions import InvalidSpecError

DEFAULT_SMOOTH_K = 10
DEFAULT_TENSOR_K = 5


class TermKind(enum.Enum):
    PARAMETRIC = 'parametric'
    SMOOTH = 'smooth'
    SMOOTH_BY = 'smooth_by'
    TENSOR = 'tensor'


@dataclass(frozen=True)
class Term:
    """One additive term of a model.

    Attributes:
        kind: Which family of basis the term uses.
        variables: Covariate names (one for parametric / smooth terms,
            two or more for tensors).
        k: Basis dimension. An int for smooths; a tuple with one entry per
            margin for tensors. Ignored for parametric terms.
        fx: Fixed degrees of freedom (unpenalized) when True.
        by: By-variable of a SMOOTH_BY term.
        interaction_only: For tensors, True means the pure interaction
            basis (``ti``) and False the full basis (``te``). For SMOOTH_BY
            terms, True fits difference smooths for non-reference levels
            only, False fits one smooth per level, and None decides from
            the by-variable (ordered factors give difference smooths).
    """
    kind: TermKind
    variables: tuple[str, ...]
    k: int | tuple[int, ...] | None = None
    fx: bool = False
    by: str | None = None
    interaction_only: bool | None = None

    def __post_init__(self):
        if not self.variables:
            raise InvalidSpecError("A term needs at least one variable")
        if self.kind is TermKind.TENSOR:
            if len(self.variables) < 2:
                raise InvalidSpecError(
                    f"Tensor terms need at least 2 variables, got {self.variables}"
                )
            k = self.k if self.k is not None else DEFAULT_TENSOR_K
            if isinstance(k, int):
                k = (k,) * len(self.variables)
            if len(k) != len(self.variables):
                raise InvalidSpecError(
                    f"Tensor k {k} does not match variables {self.variables}"
                )
            object.__setattr__(self, 'k', tuple(int(v) for v in k))
            if self.interaction_only is None:
                object.__setattr__(self, 'interaction_only', False)
        elif self.kind in (TermKind.SMOOTH, TermKind.SMOOTH_BY):
            if len(self.variables) != 1:
                raise InvalidSpecError(
                    f"s() terms take exactly one variable, got {self.variables}"
                )
            if self.k is None:
                object.__setattr__(self, 'k', DEFAULT_SMOOTH_K)
            if (self.kind is TermKind.SMOOTH_BY) != (self.by is not None):
                raise InvalidSpecError(
                    "SMOOTH_BY terms (and only those) carry a by-variable"
                )
        else:
            if len(self.variables) != 1:
                raise InvalidSpecError(
                    f"Parametric terms take exactly one variable, got {self.variables}"
                )
            if self.fx or self.by is not None:
                raise InvalidSpecError("Parametric terms take no fx/by options")

        if self.kind is not TermKind.PARAMETRIC:
            ks = self.k if isinstance(self.k, tuple) else (self.k,)
            if any(v < 4 for v in ks):
                raise InvalidSpecError(f"Basis dimension k must be >= 4 (cubic B-splines), got {self.k}")

    # --- constructors ---

    @classmethod
    def parametric(cls, variable: str) -> Term:
        return cls(TermKind.PARAMETRIC, (variable,))

    @classmethod
    def smooth(cls, variable: str, k: int = DEFAULT_SMOOTH_K, fx: bool = False,
               by: str | None = None, interaction_only: bool | None = None) -> Term:
        kind = TermKind.SMOOTH if by is None else TermKind.SMOOTH_BY
        return cls(kind, (variable,), k=k, fx=fx, by=by,
                   interaction_only=interaction_only)

    @classmethod
    def tensor(cls, *variables: str, k: int | tuple[int, ...] = DEFAULT_TENSOR_K,
               fx: bool = False, interaction_only: bool = False) -> Term:
        return cls(TermKind.TENSOR, tuple(variables), k=k, fx=fx,
                   interaction_only=interaction_only)

    # --- queries ---

    @property
    def is_smooth(self) -> bool:
        return self.kind is not TermKind.PARAMETRIC

    @property
    def all_variables(self) -> tuple[str, ...]:
        """Covariates the term reads, by-variable included."""
        if self.by is not None:
            return self.variables + (self.by,)
        return self.variables

    def involves(self, variable: str) -> bool:
        return variable in self.all_variables

    @property
    def label(self) -> str:
        """Short mgcv-style label, e.g. ``s(age)`` or ``ti(age,x)``."""
        if self.kind is TermKind.PARAMETRIC:
            return self.variables[0]
        if self.kind is TermKind.TENSOR:
            prefix = 'ti' if self.interaction_only else 'te'
            return f"{prefix}({','.join(self.variables)})"
        if self.kind is TermKind.SMOOTH_BY:
            return f"s({self.variables[0]}):{self.by}"
        return f"s({self.variables[0]})"

    def with_fx(self, fx: bool) -> Term:
        if self.kind is TermKind.PARAMETRIC:
            return self
        return replace(self, fx=fx)

    def __str__(self) -> str:
        if self.kind is TermKind.PARAMETRIC:
            return self.variables[0]

        opts: list[str] = []
        if self.kind is TermKind.TENSOR:
            name = 'ti' if self.interaction_only else 'te'
            ks = set(self.k)
            if ks != {DEFAULT_TENSOR_K}:
                if len(ks) == 1:
                    opts.append(f"k={self.k[0]}")
                else:
                    opts.append(f"k=c({', '.join(str(v) for v in self.k)})")
        else:
            name = 's'
            if self.k != DEFAULT_SMOOTH_K:
                opts.append(f"k={self.k}")
        if self.fx:
            opts.append("fx=TRUE")
        if self.by is not None:
            opts.append(f"by={self.by}")
            if self.interaction_only is not None:
                opts.append(f"diff={'TRUE' if self.interaction_only else 'FALSE'}")
        args = ', '.join(list(self.variables) + opts)
        return f"{name}({args})"


@dataclass(frozen=True)
class ModelSpec:
    """A response variable and an ordered tuple of terms.

    Term order matters: the term under test is always the last one.
    """
    response: str
    terms: tuple[Term, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.response:
            raise InvalidSpecError("ModelSpec needs a response variable")
        object.__setattr__(self, 'terms', tuple(self.terms))
        labels = [str(t) for t in self.terms]
        if len(set(labels)) != len(labels):
            raise InvalidSpecError(f"Duplicate terms in {labels}", spec=self._text())

    @classmethod
    def parse(cls, text: str) -> ModelSpec:
        """Parse formula text such as ``"y ~ sex + s(age, k=4)"``."""
        from neurogamm.formula._parser import parse_formula
        return parse_formula(text)

    def _text(self) -> str:
        rhs = ' + '.join(str(t) for t in self.terms) if self.terms else '1'
        return f"{self.response} ~ {rhs}"

    def __str__(self) -> str:
        return self._text()

    @property
    def n_terms(self) -> int:
        return len(self.terms)

    @property
    def last_term(self) -> Term:
        if not self.terms:
            raise InvalidSpecError("Model has no terms", spec=self._text())
        return self.terms[-1]

    @property
    def smooth_terms(self) -> tuple[Term, ...]:
        return tuple(t for t in self.terms if t.is_smooth)

    def variables(self) -> tuple[str, ...]:
        """All covariates in order of first appearance (response excluded)."""
        seen: list[str] = []
        for term in self.terms:
            for v in term.all_variables:
                if v not in seen:
                    seen.append(v)
        return tuple(seen)

    def smooth_variables(self) -> tuple[str, ...]:
        seen: list[str] = []
        for term in self.smooth_terms:
            for v in term.variables:
                if v not in seen:
                    seen.append(v)
        return tuple(seen)

    def with_terms(self, terms) -> ModelSpec:
        return ModelSpec(self.response, tuple(terms))
