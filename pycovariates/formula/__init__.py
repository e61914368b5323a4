from ._render import SUPPORTED_ENGINES, quote_term, unquote_term
from ._template import (
    DEFAULT_PLACEHOLDER,
    PLACEHOLDER,
    FormulaTemplate,
    GroupingBlock,
    Placeholder,
    parse_formula_template,
)
from .formula import EMPTY_TERM_POLICIES, AssembledFormula, assemble_formula

__all__ = [
    "assemble_formula",
    "parse_formula_template",
    "AssembledFormula",
    "FormulaTemplate",
    "GroupingBlock",
    "Placeholder",
    "PLACEHOLDER",
    "DEFAULT_PLACEHOLDER",
    "EMPTY_TERM_POLICIES",
    "SUPPORTED_ENGINES",
    "quote_term",
    "unquote_term",
]
