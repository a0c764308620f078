"""
Shop-name canonicalization.

Operators type shop names freely ("OM SHARMA", "Om  Sharma   Shop",
"om-sharma"), and there is no customer ID in the transaction tables. The
canonical key built here is the only join key between rows.
"""
import re
import unicodedata

# Business-type words dropped from the end of a name.
SUFFIX_WORDS = (
    "shop",
    "store",
    "stores",
    "mart",
    "market",
    "enterprise",
    "enterprises",
    "traders",
    "trading",
    "provision",
    "provisions",
    "kirana",
    "general",
    "dairy",
    "bakery",
    "supermarket",
    "super",
)

_WHITESPACE_RE = re.compile(r"\s+")
_SPACED_SUFFIX_RE = {
    word: re.compile(rf"\s+{word}$") for word in SUFFIX_WORDS
}


def _keep(ch: str) -> bool:
    # letters (with their combining marks), digits, whitespace
    return ch.isspace() or unicodedata.category(ch)[0] in "LNM"


def _strip_glued(name: str, word: str) -> str:
    if name.endswith(word) and len(name) > len(word):
        before = name[: -len(word)].strip()
        if before:
            return before
    return name


def _strip_suffixes_once(name: str) -> str:
    for word in SUFFIX_WORDS:
        name = _SPACED_SUFFIX_RE[word].sub("", name)
        name = _strip_glued(name, word)
    return name


def _strip_suffixes(name: str) -> str:
    # "abc shop store" only loses "shop" on a second pass
    while True:
        stripped = _strip_suffixes_once(name)
        if stripped == name:
            return name
        name = stripped


def canonicalize(raw: str) -> str:
    """
    Map a raw shop name to its identity key.

    Steps, in order:
        1. lowercase
        2. drop everything but letters, digits and whitespace
        3. collapse whitespace runs and trim
        4. strip trailing suffix words, spaced or glued, never to empty
        5. remove all whitespace

    Total function: never raises, empty or blank input gives "".
    """
    if not raw:
        return ""

    name = "".join(ch for ch in str(raw).lower() if _keep(ch))
    name = _WHITESPACE_RE.sub(" ", name).strip()
    if not name:
        return ""

    name = _strip_suffixes(name)
    key = _WHITESPACE_RE.sub("", name)

    # joining words can expose a glued suffix ("a sh op" -> "ashop")
    return _strip_suffixes(key)


def are_equivalent(first: str, second: str) -> bool:
    """True when both names map to the same key."""
    return canonicalize(first) == canonicalize(second)
