"""Line-level symbol matchers.

Each matcher recognises one declaration form of one language family and
returns the declared identifier. ``SYMBOL_MATCHERS`` is ordered by priority:
functions, then classes and structs, then interfaces and type aliases, then
exported constants, with class members last. The first matcher that fires
decides the symbol for a line.
"""

import re
from dataclasses import dataclass

CONTROL_KEYWORDS = frozenset({
    'if', 'for', 'while', 'switch', 'catch', 'return', 'else', 'do', 'with',
    'elif', 'except', 'function', 'new', 'await', 'typeof', 'super', 'this',
})


@dataclass(frozen=True)
class SymbolMatcher:
    """A single declaration pattern: regex plus the symbol kind it yields."""
    kind: str
    dialect: str
    pattern: re.Pattern
    strip: bool = True

    def match(self, line: str) -> str | None:
        text = line.strip() if self.strip else line.rstrip()
        m = self.pattern.search(text)
        if not m:
            return None
        name = m.group(1)
        if name in CONTROL_KEYWORDS:
            return None
        return name


def _m(kind: str, dialect: str, pattern: str, strip: bool = True) -> SymbolMatcher:
    return SymbolMatcher(kind=kind, dialect=dialect, pattern=re.compile(pattern), strip=strip)


FUNCTION_MATCHERS = [
    _m("function", "curly", r'^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(\w+)\s*[<(]'),
    _m("function", "curly", r'^(?:export\s+)?(?:const|let|var)\s+(\w+)\s*(?::[^=]+)?=\s*(?:async\s+)?function\b'),
    _m("function", "curly", r'^(?:export\s+)?(?:const|let|var)\s+(\w+)\s*(?::[^=]+)?=\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*(?::\s*[^=]+)?=>'),
    _m("function", "def", r'^(?:async\s+)?def\s+(\w+)\s*\('),
    _m("function", "func", r'^func\s+(?:\([^)]*\)\s*)?(\w+)\s*[\[(]'),
    _m("function", "curly", r'^(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?fn\s+(\w+)\s*[<(]'),
]

CLASS_MATCHERS = [
    _m("class", "curly", r'^(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(\w+)'),
    _m("class", "def", r'^class\s+(\w+)\s*[(:]'),
    _m("class", "func", r'^type\s+(\w+)\s+struct\b'),
    _m("class", "curly", r'^(?:pub(?:\([^)]*\))?\s+)?struct\s+(\w+)'),
]

TYPE_MATCHERS = [
    _m("interface", "curly", r'^(?:export\s+)?(?:default\s+)?interface\s+(\w+)'),
    _m("interface", "func", r'^type\s+(\w+)\s+interface\b'),
    _m("type", "curly", r'^(?:export\s+)?(?:declare\s+)?type\s+(\w+)\s*(?:<[^>]*>)?\s*='),
]

CONST_MATCHERS = [
    _m("const", "curly", r'^(?:export\s+)?const\s+([A-Z_][A-Z0-9_]*)\s*(?::[^=]+)?='),
    # Module-level constants in def-style sources are unindented
    _m("const", "def", r'^([A-Z][A-Z0-9_]+)\s*(?::[^=]+)?=(?!=)', strip=False),
]

METHOD_MATCHERS = [
    _m("method", "curly",
       r'^(?:(?:public|private|protected|static|async|abstract|override|readonly|get|set)\s+)*'
       r'#?(\w+)\s*(?:<[^>]*>)?\s*\([^)]*\)\s*(?::\s*[^{;=]+)?\{'),
]

SYMBOL_MATCHERS: list[SymbolMatcher] = [
    *FUNCTION_MATCHERS,
    *CLASS_MATCHERS,
    *TYPE_MATCHERS,
    *CONST_MATCHERS,
    *METHOD_MATCHERS,
]


def match_symbol(line: str, matchers: list[SymbolMatcher] | None = None) -> tuple[str, str] | None:
    """Return (name, kind) for the first matcher that fires on line."""
    for matcher in matchers or SYMBOL_MATCHERS:
        name = matcher.match(line)
        if name:
            return name, matcher.kind
    return None
