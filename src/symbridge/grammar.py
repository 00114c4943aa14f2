"""Default grammar collaborator: interpretations, adjacency and intent tables.

The grammar supplies everything the core treats as external:

- the registry of lexical interpretations per symbol class (used for the
  lexical confidence term and as the resolver's alternative space)
- adjacency expectations between hints (type-consistency term)
- bracket pairs: ``()`` and ``[]`` open inline groups, ``{}`` opens a block
  spanning rows
- permitted child intents per parent intent, plus the nearest-intent order
  used for the single coercion step
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from symbridge.types import INTENT_HINTS, Intent, IntentHint, SymbolClass


_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"


@dataclass(frozen=True, slots=True)
class Interpretation:
    """One way to read a lexeme of a given symbol class."""

    symbol_class: SymbolClass
    type_tag: str
    hint: IntentHint
    pattern: re.Pattern[str]

    def matches(self, lexeme: str) -> bool:
        return self.pattern.fullmatch(lexeme) is not None


def _interp(symbol_class: SymbolClass, type_tag: str, hint: IntentHint, pattern: str) -> Interpretation:
    return Interpretation(
        symbol_class=symbol_class,
        type_tag=type_tag,
        hint=hint,
        pattern=re.compile(pattern),
    )


DEFAULT_INTERPRETATIONS: tuple[Interpretation, ...] = (
    _interp("terminal", "identifier", "identifier", _IDENT),
    _interp("terminal", "keyword.type", "type_keyword", r"int|float|str|bool|let|var|const|def"),
    _interp("terminal", "keyword.control", "control_keyword", r"if|else|while|for|return|break|continue"),
    _interp("terminal", "literal", "literal", r"\d+(?:\.\d+)?|\"[^\"]*\"|'[^']*'|true|false|null"),
    _interp("terminal", "call", "call", _IDENT),
    _interp("terminal", "operator.assign", "operator_assign", r"=|:=|\+=|-=|\*=|/="),
    _interp("terminal", "operator", "operator", r"==|!=|<=|>=|&&|\|\||[-+*/%<>!:]"),
    _interp("delimiter", "delimiter", "delimiter", r"[(\[{,]"),
    _interp("query", "query", "query", r"\?"),
    _interp("closure", "closure", "closure", r"[;)\]}]"),
    _interp("process_control", "process", "process", r"fork|join|spawn|yield|stage|phase|barrier"),
)

_CLASS_DEFAULT_HINT: dict[SymbolClass, IntentHint] = {
    "terminal": "identifier",
    "delimiter": "delimiter",
    "query": "query",
    "closure": "closure",
    "process_control": "process",
}

# Hints allowed to follow a given hint within a row; ``None`` is row start.
_FOLLOWS: dict[IntentHint | None, frozenset[IntentHint]] = {
    None: frozenset(
        {"type_keyword", "control_keyword", "identifier", "call", "process", "closure", "literal", "delimiter"},
    ),
    "type_keyword": frozenset({"identifier", "call"}),
    "control_keyword": frozenset({"delimiter", "identifier", "literal", "call", "closure", "operator"}),
    "identifier": frozenset({"operator_assign", "operator", "query", "closure", "delimiter"}),
    "call": frozenset({"delimiter"}),
    "literal": frozenset({"operator", "query", "closure", "delimiter"}),
    "operator_assign": frozenset({"identifier", "literal", "call", "delimiter", "operator"}),
    "operator": frozenset({"identifier", "literal", "call", "delimiter"}),
    "query": frozenset({"identifier", "literal", "call", "delimiter", "closure"}),
    "delimiter": frozenset(
        {
            "identifier",
            "literal",
            "call",
            "delimiter",
            "closure",
            "operator",
            "type_keyword",
            "control_keyword",
            "query",
        },
    ),
    "closure": frozenset(
        {"closure", "delimiter", "operator", "query", "identifier", "literal", "call", "control_keyword"},
    ),
    "process": frozenset({"identifier", "literal", "call", "delimiter", "closure"}),
}
_ROW_ENDINGS: frozenset[IntentHint] = frozenset(
    {"closure", "identifier", "literal", "delimiter", "process", "control_keyword"},
)

_ALL_STATEMENT_INTENTS: frozenset[Intent] = frozenset(
    {"declare", "assign", "control", "invoke", "query", "terminate", "process_transition"},
)

PERMITTED_CHILD_INTENTS: dict[Intent | None, frozenset[Intent]] = {
    None: _ALL_STATEMENT_INTENTS,
    "declare": frozenset({"declare", "assign", "invoke", "query", "terminate"}),
    "assign": frozenset({"assign", "declare", "invoke", "query", "terminate"}),
    "control": frozenset(
        {"control", "declare", "assign", "invoke", "query", "terminate", "process_transition"},
    ),
    "invoke": frozenset({"invoke", "query", "assign", "terminate"}),
    "query": frozenset({"query", "invoke", "control", "terminate"}),
    "process_transition": frozenset(
        {"process_transition", "control", "invoke", "declare", "assign", "terminate"},
    ),
    "terminate": frozenset(),
    "unresolved": frozenset(),
}

# Ordered fallbacks for one coercion step, nearest first.
NEAREST_INTENTS: dict[Intent, tuple[Intent, ...]] = {
    "declare": ("assign",),
    "assign": ("declare", "invoke"),
    "control": ("query", "process_transition"),
    "invoke": ("query", "assign"),
    "query": ("invoke", "control"),
    "process_transition": ("control", "invoke"),
    "terminate": (),
    "unresolved": (),
}

# Statement intent priority: the strongest role-defining hint in a row wins.
STATEMENT_HINT_PRIORITY: tuple[tuple[IntentHint, Intent], ...] = (
    ("process", "process_transition"),
    ("control_keyword", "control"),
    ("type_keyword", "declare"),
    ("operator_assign", "assign"),
    ("query", "query"),
    ("call", "invoke"),
)
DEFAULT_STATEMENT_INTENT: Intent = "invoke"

# Resolver alternatives may swap between these intents without being rejected.
COMPATIBLE_INTENTS: frozenset[tuple[Intent, Intent]] = frozenset(
    {("declare", "assign"), ("assign", "declare")},
)


@dataclass(frozen=True, slots=True, eq=False)
class Grammar:
    """Grammar collaborator tables consumed by scoring, gating and building.

    Compared and hashed by identity so an instance can key confidence caches.
    """

    interpretations: tuple[Interpretation, ...] = DEFAULT_INTERPRETATIONS
    inline_pairs: dict[str, str] = field(default_factory=lambda: {"(": ")", "[": "]"})
    block_pairs: dict[str, str] = field(default_factory=lambda: {"{": "}"})
    permitted_child_intents: dict[Intent | None, frozenset[Intent]] = field(
        default_factory=lambda: dict(PERMITTED_CHILD_INTENTS),
    )
    nearest_intents: dict[Intent, tuple[Intent, ...]] = field(
        default_factory=lambda: dict(NEAREST_INTENTS),
    )
    compatible_intents: frozenset[tuple[Intent, Intent]] = COMPATIBLE_INTENTS

    def alternatives_for(self, symbol_class: SymbolClass) -> tuple[Interpretation, ...]:
        """Registered interpretations for a class, in registry order."""
        return tuple(row for row in self.interpretations if row.symbol_class == symbol_class)

    def interpretation(self, symbol_class: SymbolClass, type_tag: str) -> Interpretation | None:
        for row in self.interpretations:
            if row.symbol_class == symbol_class and row.type_tag == type_tag:
                return row
        return None

    def hint_for(self, symbol_class: SymbolClass, type_tag: str, raw_hint: str = "") -> IntentHint:
        """Turn the upstream hint/tag pair into the closed hint variant."""
        if raw_hint in INTENT_HINTS:
            return raw_hint  # type: ignore[return-value]
        row = self.interpretation(symbol_class, type_tag)
        if row is not None:
            return row.hint
        return _CLASS_DEFAULT_HINT[symbol_class]

    def lexically_valid(self, symbol_class: SymbolClass, type_tag: str, lexeme: str) -> bool:
        row = self.interpretation(symbol_class, type_tag)
        return row is not None and row.matches(lexeme)

    def may_follow(self, left: IntentHint | None, right: IntentHint) -> bool:
        return right in _FOLLOWS.get(left, frozenset())

    def may_end_row(self, hint: IntentHint) -> bool:
        return hint in _ROW_ENDINGS

    def opens(self, lexeme: str) -> bool:
        return lexeme in self.inline_pairs or lexeme in self.block_pairs

    def closes(self, lexeme: str) -> bool:
        return lexeme in self.inline_pairs.values() or lexeme in self.block_pairs.values()

    def is_block_opener(self, lexeme: str) -> bool:
        return lexeme in self.block_pairs

    def is_block_closer(self, lexeme: str) -> bool:
        return lexeme in self.block_pairs.values()

    def closer_for(self, opener: str) -> str | None:
        return self.inline_pairs.get(opener) or self.block_pairs.get(opener)

    def permits(self, parent: Intent | None, child: Intent) -> bool:
        return child in self.permitted_child_intents.get(parent, frozenset())


DEFAULT_GRAMMAR = Grammar()
