"""
Typed formula templates and the parser that builds them from R-style strings.
"""

from dataclasses import dataclass, field

from ..errors import FormulaSyntaxError

DEFAULT_PLACEHOLDER = "__PLACEHOLDER__"

# Terms that only control the intercept and never name a covariate
INTERCEPT_TERMS = frozenset({"0", "1", "-1", "- 1", "+1", "+ 1"})


class Placeholder:
    """Marker for the position where biomarker terms are inserted."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PLACEHOLDER"

    def __reduce__(self):
        return (Placeholder, ())


PLACEHOLDER = Placeholder()

Term = str | Placeholder


def _check_terms(terms: tuple, where: str, allow_placeholder: bool = True) -> None:
    for term in terms:
        if term is PLACEHOLDER:
            if allow_placeholder:
                continue
            raise ValueError(f"{where} removed terms cannot contain PLACEHOLDER.")
        if not isinstance(term, str):
            raise TypeError(
                f"{where} terms must be strings or PLACEHOLDER, got {type(term).__name__}."
            )
        if not term.strip():
            raise ValueError(f"{where} terms must be non-empty strings.")


def _join_signed(added: list[str], removed: tuple[str, ...]) -> str:
    """Joins added terms with ' + ' and appends ' - term' for each removed term."""
    text = " + ".join(added) or "1"
    return text + "".join(f" - {term}" for term in removed)


@dataclass(frozen=True)
class GroupingBlock:
    """
    A random-effects block ``(terms | group)``.

    Attributes:
        terms: Terms varying by group; may include PLACEHOLDER for per-group
               biomarker slopes. Use "1" for a random intercept.
        group: The grouping variable (e.g. 'site' or 'site:batch').
        correlated: False renders the uncorrelated ``||`` form.
        removed: Terms subtracted inside the block, e.g. ("1",) for
                 ``(0 + x - 1 | group)`` style intercept removal.
    """

    terms: tuple[Term, ...]
    group: str
    correlated: bool = True
    removed: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "terms", tuple(self.terms))
        object.__setattr__(self, "removed", tuple(self.removed))
        _check_terms(self.terms, "Grouping block")
        _check_terms(self.removed, "Grouping block", allow_placeholder=False)
        if not isinstance(self.group, str) or not self.group.strip():
            raise ValueError("Grouping block 'group' must be a non-empty string.")

    @property
    def has_placeholder(self) -> bool:
        return any(t is PLACEHOLDER for t in self.terms)

    def render(self, placeholder: str = DEFAULT_PLACEHOLDER) -> str:
        lhs = _join_signed(
            [placeholder if t is PLACEHOLDER else t for t in self.terms], self.removed
        )
        bar = "|" if self.correlated else "||"
        return f"({lhs} {bar} {self.group})"


@dataclass(frozen=True)
class FormulaTemplate:
    """
    A model formula with a placeholder marking where biomarker terms go.

    Attributes:
        outcome: Left-hand side (e.g. 'y' or 'Surv(time, status)'); None for a
                 one-sided formula.
        terms: Fixed (population-level) terms in order, possibly PLACEHOLDER.
        groups: Random-effects blocks in order.
        removed: Terms subtracted from the right-hand side, e.g. ("1",) for
                 ``y ~ x - 1``. Rendered after every added term.

    Example:
        >>> FormulaTemplate("y", ("age", PLACEHOLDER), (GroupingBlock(("1",), "site"),))
    """

    outcome: str | None
    terms: tuple[Term, ...] = ()
    groups: tuple[GroupingBlock, ...] = field(default=())
    removed: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "terms", tuple(self.terms))
        object.__setattr__(self, "groups", tuple(self.groups))
        object.__setattr__(self, "removed", tuple(self.removed))
        if self.outcome is not None and (
            not isinstance(self.outcome, str) or not self.outcome.strip()
        ):
            raise ValueError("Formula outcome must be a non-empty string or None.")
        _check_terms(self.terms, "Formula")
        _check_terms(self.removed, "Formula", allow_placeholder=False)
        for block in self.groups:
            if not isinstance(block, GroupingBlock):
                raise TypeError(
                    f"Formula groups must be GroupingBlock instances, got {type(block).__name__}."
                )

    @property
    def has_placeholder(self) -> bool:
        return any(t is PLACEHOLDER for t in self.terms) or any(
            g.has_placeholder for g in self.groups
        )

    def render(self, placeholder: str = DEFAULT_PLACEHOLDER) -> str:
        """Renders the template back to text with the placeholder token in place."""
        parts = [placeholder if t is PLACEHOLDER else t for t in self.terms]
        parts.extend(g.render(placeholder) for g in self.groups)
        rhs = _join_signed(parts, self.removed)
        return f"{self.outcome} ~ {rhs}" if self.outcome is not None else f"~ {rhs}"

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def from_string(cls, text: str, placeholder: str = DEFAULT_PLACEHOLDER) -> "FormulaTemplate":
        return parse_formula_template(text, placeholder=placeholder)


###########
# Parsing #
###########

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_QUOTES = ("`", "'", '"')


def _top_level_positions(text: str, char: str) -> list[int]:
    """
    Returns the positions of `char` outside brackets and quoted names.

    Raises:
        FormulaSyntaxError: On unbalanced brackets or an unterminated quote.
    """
    positions = []
    stack = []
    quote = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote is not None:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in _OPENERS.values():
            if not stack or stack.pop() != ch:
                raise FormulaSyntaxError(f"Unbalanced '{ch}' at position {i} in '{text}'.")
        elif ch == char and not stack:
            positions.append(i)
        i += 1
    if quote is not None:
        raise FormulaSyntaxError(f"Unterminated {quote} quote in '{text}'.")
    if stack:
        raise FormulaSyntaxError(f"Unclosed bracket in '{text}'.")
    return positions


def _split_signed(text: str, where: str) -> list[tuple[str, str]]:
    """
    Splits `text` on top-level '+' and '-' into (sign, term) pairs.

    A leading sign is allowed ('-1 + x'); any other empty term is an error.
    """
    cuts = sorted(_top_level_positions(text, "+") + _top_level_positions(text, "-"))
    pieces = []
    start, sign = 0, "+"
    for pos in cuts + [len(text)]:
        pieces.append((sign, text[start:pos]))
        if pos < len(text):
            start, sign = pos + 1, text[pos]
    if cuts and not pieces[0][1].strip():
        pieces = pieces[1:]
    for _, part in pieces:
        if not part.strip():
            raise FormulaSyntaxError(f"Empty term in {where}.")
    return pieces


def _parse_term(raw: str, placeholder: str, where: str) -> Term:
    term = raw.strip()
    if not term:
        raise FormulaSyntaxError(f"Empty term in {where}.")
    if term == placeholder:
        return PLACEHOLDER
    if placeholder in term:
        raise FormulaSyntaxError(
            f"Placeholder '{placeholder}' must stand alone as a term, found inside '{term}'."
        )
    return term


def _parse_removed(raw: str, placeholder: str, where: str) -> str:
    term = _parse_term(raw, placeholder, where)
    if term is PLACEHOLDER:
        raise FormulaSyntaxError(
            f"Placeholder '{placeholder}' cannot be subtracted from a formula in {where}."
        )
    return term


def _as_grouping_block(term: str, placeholder: str) -> GroupingBlock | None:
    """Parses '(lhs | group)' or '(lhs || group)'; returns None for other terms."""
    if not (term.startswith("(") and term.endswith(")")):
        return None
    inner = term[1:-1]
    try:
        bars = _top_level_positions(inner, "|")
    except FormulaSyntaxError:
        # outer parentheses do not enclose the whole term, e.g. '(a) + (b)'
        return None
    if not bars:
        return None

    correlated = True
    first = bars[0]
    second_start = first + 1
    if len(bars) >= 2 and bars[1] == first + 1:
        correlated = False
        second_start = first + 2
        bars = bars[2:]
    else:
        bars = bars[1:]
    if bars:
        raise FormulaSyntaxError(f"Grouping block '{term}' has more than one '|'.")

    lhs = inner[:first]
    group = inner[second_start:].strip()
    if not group:
        raise FormulaSyntaxError(f"Grouping block '{term}' has no grouping variable.")
    if placeholder in group:
        raise FormulaSyntaxError(
            f"Placeholder '{placeholder}' cannot be used as a grouping variable."
        )
    where = f"grouping block '{term}'"
    terms: list[Term] = []
    removed: list[str] = []
    for sign, part in _split_signed(lhs, where):
        if sign == "-":
            removed.append(_parse_removed(part, placeholder, where))
        else:
            terms.append(_parse_term(part, placeholder, where))
    return GroupingBlock(
        terms=tuple(terms), group=group, correlated=correlated, removed=tuple(removed)
    )


def parse_formula_template(
    text: str, placeholder: str = DEFAULT_PLACEHOLDER
) -> FormulaTemplate:
    """
    Parses an R-style formula string into a `FormulaTemplate`.

    Supported shape: ``outcome ~ term + term + (terms | group)``. The right-hand
    side is split on top-level '+' and '-'; bracketed expressions and quoted
    names are kept intact. Terms after a '-' are removals (``y ~ x - 1`` drops
    the intercept) and are rendered back after every added term. Terms equal to
    `placeholder` become PLACEHOLDER, including inside grouping blocks. Other
    terms are kept verbatim.

    Args:
        text: The formula template, e.g. 'y ~ age + __PLACEHOLDER__ + (1 | site)'.
        placeholder: The placeholder token. Defaults to '__PLACEHOLDER__'.

    Returns:
        The parsed FormulaTemplate.

    Raises:
        TypeError: If `text` or `placeholder` is not a string.
        FormulaSyntaxError: If the template has no (or several) '~', unbalanced
                            brackets or quotes, empty terms, or a placeholder
                            embedded in a larger expression or subtracted.
    """
    if not isinstance(text, str):
        raise TypeError(f"Formula template must be a string, got {type(text).__name__}.")
    if not isinstance(placeholder, str) or not placeholder.strip():
        raise TypeError("placeholder must be a non-empty string.")

    tildes = _top_level_positions(text, "~")
    if len(tildes) != 1:
        raise FormulaSyntaxError(
            f"Formula template must contain exactly one '~', found {len(tildes)}: '{text}'."
        )
    lhs, rhs = text[: tildes[0]].strip(), text[tildes[0] + 1 :]
    if placeholder in lhs:
        raise FormulaSyntaxError("Placeholder cannot appear in the formula outcome.")
    if not rhs.strip():
        raise FormulaSyntaxError(f"Formula template has an empty right-hand side: '{text}'.")

    where = f"'{text}'"
    terms: list[Term] = []
    groups: list[GroupingBlock] = []
    removed: list[str] = []
    for sign, part in _split_signed(rhs, where):
        if sign == "-":
            removed.append(_parse_removed(part, placeholder, where))
            continue
        block = _as_grouping_block(part.strip(), placeholder)
        if block is not None:
            groups.append(block)
        else:
            terms.append(_parse_term(part, placeholder, where))

    return FormulaTemplate(
        outcome=lhs or None, terms=tuple(terms), groups=tuple(groups), removed=tuple(removed)
    )
