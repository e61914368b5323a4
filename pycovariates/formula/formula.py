"""
Formula assembly: substitutes biomarker terms into a clinical formula template.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..errors import EmptyTermListError, PlaceholderNotFoundError
from ._render import _check_engine, quote_term, unquote_term
from ._template import (
    DEFAULT_PLACEHOLDER,
    INTERCEPT_TERMS,
    PLACEHOLDER,
    FormulaTemplate,
    GroupingBlock,
    Term,
    parse_formula_template,
)

logger = logging.getLogger(__name__)

EMPTY_TERM_POLICIES = ("error", "identity", "drop")
IDENTITY_TERM = "1"


@dataclass(frozen=True)
class AssembledFormula:
    """
    A formula with biomarker terms substituted, rendered for one engine.

    Attributes:
        text: The formula text passed to the model fitting engine.
        outcome: The left-hand side, or None for a one-sided formula.
        fixed_terms: Rendered population-level terms.
        removed_terms: Terms subtracted from the right-hand side (e.g. "1"),
                       rendered after every added term.
        groups: Grouping blocks with rendered terms (no placeholders left).
        biomarker_terms: Raw (unquoted) biomarker names, in matrix order.
        covariates: Every added term of the formula, once each: fixed terms,
                    grouping-block terms and grouping variables, in order of
                    first appearance. Quoted names are unquoted and
                    biomarkers appear under their raw names. Composite
                    template terms such as 'C(stage)' or 'age*sex' are
                    listed verbatim, not split into variables. Intercept and
                    removed terms are not included.
        engine: The engine whose quoting was applied.
    """

    text: str
    outcome: str | None
    fixed_terms: tuple[str, ...]
    removed_terms: tuple[str, ...]
    groups: tuple[GroupingBlock, ...]
    biomarker_terms: tuple[str, ...]
    covariates: tuple[str, ...]
    engine: str

    def __str__(self) -> str:
        return self.text


def _substitute(terms: Sequence[Term], replacement: list[str]) -> list[str]:
    out: list[str] = []
    for term in terms:
        for item in (replacement if term is PLACEHOLDER else [term]):
            if item not in out:
                out.append(item)
    return out


def _with_group_slopes(template: FormulaTemplate, group_by: str) -> FormulaTemplate:
    """Adds the placeholder to the block grouped by `group_by`, creating it if needed."""
    if not isinstance(group_by, str) or not group_by.strip():
        raise ValueError("group_by must be a non-empty string.")
    group_by = group_by.strip()

    found = False
    groups = []
    for block in template.groups:
        if block.group == group_by:
            found = True
            if not block.has_placeholder:
                block = GroupingBlock(
                    terms=block.terms + (PLACEHOLDER,),
                    group=block.group,
                    correlated=block.correlated,
                    removed=block.removed,
                )
        groups.append(block)
    if not found:
        groups.append(GroupingBlock(terms=(IDENTITY_TERM, PLACEHOLDER), group=group_by))
    return FormulaTemplate(
        outcome=template.outcome,
        terms=template.terms,
        groups=tuple(groups),
        removed=template.removed,
    )


def _render_text(
    outcome: str | None,
    fixed: list[str],
    groups: list[GroupingBlock],
    removed: tuple[str, ...],
) -> str:
    parts = list(fixed) + [g.render() for g in groups]
    rhs = " + ".join(parts) or IDENTITY_TERM
    rhs += "".join(f" - {term}" for term in removed)
    return f"{outcome} ~ {rhs}" if outcome is not None else f"~ {rhs}"


def assemble_formula(
    template: FormulaTemplate | str,
    biomarker_terms: Sequence[str],
    group_by: str | None = None,
    *,
    engine: str = "formulae",
    empty_terms: str = "error",
    placeholder: str = DEFAULT_PLACEHOLDER,
    verbosity: int = 0,
) -> AssembledFormula:
    """
    Substitutes biomarker column names into a formula template.

    Every occurrence of the placeholder is replaced by the full additive list of
    biomarker terms, including occurrences inside grouping blocks (per-group
    random slopes for each biomarker). Each biomarker name is individually
    delimited for the target engine, so punctuation inside names such as
    'TP53.Missense_Mutation' cannot break parsing. Template terms are kept
    verbatim, and removed terms ('- 1') are rendered after every added term.

    Args:
        template: A `FormulaTemplate`, or a string parsed with
                  `parse_formula_template` (e.g. 'y ~ age + __PLACEHOLDER__').
        biomarker_terms: Biomarker column names in matrix column order.
        group_by: Optional grouping variable. Adds the placeholder to the block
                  grouped by this variable, or appends a new block
                  '(1 + PLACEHOLDER | group_by)' if there is none.
        engine: Target engine controlling name quoting: 'formulae' (bambi,
                default) and 'formulaic' (raw backticks), 'lme4', 'brms', 'r'
                (backticks with backslash escapes) or 'patsy', 'statsmodels'
                (Q("...")).
        empty_terms: What to do when `biomarker_terms` is empty:
                     - 'error' (default): raise EmptyTermListError.
                     - 'identity': substitute the neutral term '1'.
                     - 'drop': remove the placeholder.
                     Grouping blocks are kept either way; a block left with no
                     terms renders as '(1 | group)'.
        placeholder: Placeholder token used when `template` is a string.
        verbosity: Controls logging. `<= -1` logs the assembled formula at INFO.

    Returns:
        An immutable AssembledFormula.

    Raises:
        PlaceholderNotFoundError: If terms are given but the template has no placeholder.
        EmptyTermListError: If no terms are given and `empty_terms` is 'error'.
        FormulaSyntaxError: If a string template cannot be parsed.
        ValueError: If the engine or policy is unsupported, terms are empty
                    strings or repeated, or a biomarker name cannot be quoted
                    for the engine (a backtick under 'formulae'/'formulaic').
        TypeError: If inputs have unsupported types.
    """
    if isinstance(template, str):
        template = parse_formula_template(template, placeholder=placeholder)
    elif not isinstance(template, FormulaTemplate):
        raise TypeError(
            f"template must be a FormulaTemplate or a string, got {type(template).__name__}."
        )
    _check_engine(engine)
    if empty_terms not in EMPTY_TERM_POLICIES:
        raise ValueError(
            f"Invalid empty_terms policy '{empty_terms}'. Must be one of {list(EMPTY_TERM_POLICIES)}"
        )
    if isinstance(biomarker_terms, str):
        raise TypeError("biomarker_terms must be a sequence of names, not a single string.")

    names = list(biomarker_terms)
    for name in names:
        if not isinstance(name, str):
            raise TypeError(f"Biomarker terms must be strings, got {type(name).__name__}.")
        if not name:
            raise ValueError("Biomarker terms must be non-empty strings.")
    if len(set(names)) != len(names):
        repeated = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Biomarker terms are repeated: {repeated}")

    if group_by is not None:
        template = _with_group_slopes(template, group_by)

    if names and not template.has_placeholder:
        raise PlaceholderNotFoundError(
            f"{len(names)} biomarker term(s) supplied but the template "
            f"'{template.render(placeholder)}' has no placeholder."
        )

    if names:
        replacement = [quote_term(name, engine) for name in names]
    elif empty_terms == "error":
        raise EmptyTermListError(
            "No biomarker terms to substitute. Pass empty_terms='identity' or "
            "empty_terms='drop' to allow a formula without biomarkers."
        )
    elif empty_terms == "identity":
        replacement = [IDENTITY_TERM]
    else:
        replacement = []

    fixed = _substitute(template.terms, replacement)
    groups = [
        GroupingBlock(
            terms=tuple(_substitute(block.terms, replacement)),
            group=block.group,
            correlated=block.correlated,
            removed=block.removed,
        )
        for block in template.groups
    ]

    # template terms lose their quotes, biomarkers come from the input
    raw_by_rendered = dict(zip(replacement, names))
    covariates: list[str] = []
    for term in fixed + [t for g in groups for t in g.terms] + [g.group for g in groups]:
        if term in INTERCEPT_TERMS:
            continue
        raw = raw_by_rendered.get(term, unquote_term(term, engine))
        if raw not in covariates:
            covariates.append(raw)

    text = _render_text(template.outcome, fixed, groups, template.removed)
    if verbosity <= -1:
        logger.info(f"Assembled formula with {len(names)} biomarker term(s): {text}")

    return AssembledFormula(
        text=text,
        outcome=template.outcome,
        fixed_terms=tuple(fixed),
        removed_terms=template.removed,
        groups=tuple(groups),
        biomarker_terms=tuple(names),
        covariates=tuple(covariates),
        engine=engine,
    )
