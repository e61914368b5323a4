"""
Engine-specific quoting of term names.

Biomarker ids such as 'TP53.Missense_Mutation', 'HLA-A' or 'del(5q)' are not
valid identifiers in formula syntax, so every biomarker term is delimited when
the formula is rendered for a target engine.
"""

# formulae (bambi) and formulaic read everything up to the next backtick as the
# name; there is no escape sequence.
_RAW_BACKTICK_ENGINES = ("formulae", "formulaic")
# R parses backtick names like string literals, with backslash escapes.
_R_BACKTICK_ENGINES = ("lme4", "brms", "r")
# Engines that read patsy's Q("...") quoting.
_Q_ENGINES = ("patsy", "statsmodels")

SUPPORTED_ENGINES = _RAW_BACKTICK_ENGINES + _R_BACKTICK_ENGINES + _Q_ENGINES


def _check_engine(engine: str) -> None:
    if engine not in SUPPORTED_ENGINES:
        raise ValueError(
            f"Unsupported engine '{engine}'. Supported engines are: {list(SUPPORTED_ENGINES)}"
        )


def quote_term(name: str, engine: str = "formulae") -> str:
    """
    Delimits a column name so it parses as a single variable in `engine`.

    Args:
        name: Raw column name.
        engine: Target formula engine (see `SUPPORTED_ENGINES`).

    Returns:
        The quoted name, e.g. '`TP53.Missense`' or 'Q("TP53.Missense")'.

    Raises:
        ValueError: If the engine is unsupported, the name is empty, or the name
                    contains a backtick and the engine ('formulae',
                    'formulaic') has no way to escape one.
        TypeError: If the name is not a string.
    """
    _check_engine(engine)
    if not isinstance(name, str):
        raise TypeError(f"Term names must be strings, got {type(name).__name__}.")
    if not name:
        raise ValueError("Term names must be non-empty.")

    if engine in _RAW_BACKTICK_ENGINES:
        if "`" in name:
            raise ValueError(
                f"Column name {name!r} contains a backtick, which engine '{engine}' "
                "cannot quote. Rename the column or use an R or patsy engine."
            )
        return f"`{name}`"

    escaped = name.replace("\\", "\\\\")
    if engine in _Q_ENGINES:
        escaped = escaped.replace('"', '\\"')
        return f'Q("{escaped}")'
    escaped = escaped.replace("`", "\\`")
    return f"`{escaped}`"


def unquote_term(term: str, engine: str = "formulae") -> str:
    """
    Strips backtick or Q("...") delimiters from a term, undoing `quote_term`.

    Backslash escapes inside backticks are only resolved for the R engines.
    Terms without delimiters are returned stripped of surrounding whitespace.
    """
    term = term.strip()
    if len(term) >= 2 and term.startswith("`") and term.endswith("`"):
        inner = term[1:-1]
        return inner if engine in _RAW_BACKTICK_ENGINES else _unescape(inner)
    for prefix, suffix in (('Q("', '")'), ("Q('", "')")):
        if term.startswith(prefix) and term.endswith(suffix) and len(term) >= 5:
            return _unescape(term[len(prefix) : -len(suffix)])
    return term


def _unescape(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text):
            out.append(text[i + 1])
            i += 2
        else:
            out.append(text[i])
            i += 1
    return "".join(out)
