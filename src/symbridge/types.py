"""Core symbol and position types for symbridge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


type SymbolClass = Literal["terminal", "delimiter", "query", "closure", "process_control"]
type IntentHint = Literal[
    "identifier",
    "type_keyword",
    "control_keyword",
    "literal",
    "call",
    "operator_assign",
    "operator",
    "delimiter",
    "query",
    "closure",
    "process",
]
type Intent = Literal[
    "declare",
    "assign",
    "control",
    "invoke",
    "query",
    "terminate",
    "process_transition",
    "unresolved",
]
type SymbolStatus = Literal[
    "pending",
    "accepted",
    "flagged",
    "resolved",
    "manual_review",
    "not_processed",
]

SYMBOL_CLASSES: tuple[SymbolClass, ...] = (
    "terminal",
    "delimiter",
    "query",
    "closure",
    "process_control",
)
INTENT_HINTS: tuple[IntentHint, ...] = (
    "identifier",
    "type_keyword",
    "control_keyword",
    "literal",
    "call",
    "operator_assign",
    "operator",
    "delimiter",
    "query",
    "closure",
    "process",
)
INTENTS: tuple[Intent, ...] = (
    "declare",
    "assign",
    "control",
    "invoke",
    "query",
    "terminate",
    "process_transition",
    "unresolved",
)
TERMINAL_STATUSES: frozenset[SymbolStatus] = frozenset(
    {"accepted", "resolved", "manual_review", "not_processed"},
)


@dataclass(frozen=True, slots=True)
class Position:
    """Grid key: statement row, column within the row, optional process lane."""

    row: int
    column: int
    process: int | None = None

    def __post_init__(self) -> None:
        if self.row < 0 or self.column < 0:
            raise ValueError(f"row/column must be >= 0, got ({self.row}, {self.column})")
        if self.process is not None and self.process < 0:
            raise ValueError(f"process must be >= 0, got {self.process}")

    def sort_key(self) -> tuple[int, int, int]:
        lane = -1 if self.process is None else self.process
        return (lane, self.row, self.column)

    def label(self) -> str:
        if self.process is None:
            return f"{self.row}:{self.column}"
        return f"{self.process}/{self.row}:{self.column}"


@dataclass(frozen=True, slots=True)
class Symbol:
    """Immutable classified token. Disambiguation yields a new Symbol."""

    symbol_id: str
    symbol_class: SymbolClass
    lexeme: str
    type_tag: str
    hint: IntentHint
    lexical_score: float = 1.0
    stage: int | None = None
    process: int | None = None
    phase: int | None = None

    def __post_init__(self) -> None:
        if not self.symbol_id:
            raise ValueError("symbol_id cannot be empty")
        if self.symbol_class not in SYMBOL_CLASSES:
            raise ValueError(f"unknown symbol_class {self.symbol_class!r}")
        if self.hint not in INTENT_HINTS:
            raise ValueError(f"unknown hint {self.hint!r}")
        if not self.lexeme:
            raise ValueError("lexeme cannot be empty")
        if not 0.0 <= self.lexical_score <= 1.0:
            raise ValueError("lexical_score must be in [0.0, 1.0]")


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """Upstream tokenizer record; row/column may be left for inference."""

    symbol_class: SymbolClass
    type_tag: str
    lexeme: str
    row: int | None = None
    column: int | None = None
    process: int | None = None
    stage: int | None = None
    phase: int | None = None
    intent_hint: str = ""
    lexical_confidence: float = 1.0

    def __post_init__(self) -> None:
        if self.symbol_class not in SYMBOL_CLASSES:
            raise ValueError(f"unknown symbol_class {self.symbol_class!r}")
        if not self.type_tag:
            raise ValueError("type_tag cannot be empty")
        if not self.lexeme:
            raise ValueError("lexeme cannot be empty")
        if not 0.0 <= self.lexical_confidence <= 1.0:
            raise ValueError("lexical_confidence must be in [0.0, 1.0]")


def token_record_from_dict(payload: dict[str, object]) -> TokenRecord:
    """Build a TokenRecord from a decoded JSON object."""

    def _opt_int(key: str) -> int | None:
        value = payload.get(key)
        return None if value is None else int(value)  # type: ignore[arg-type]

    return TokenRecord(
        symbol_class=str(payload.get("symbol_class") or ""),  # type: ignore[arg-type]
        type_tag=str(payload.get("type_tag") or ""),
        lexeme=str(payload.get("lexeme") or ""),
        row=_opt_int("row"),
        column=_opt_int("column"),
        process=_opt_int("process"),
        stage=_opt_int("stage"),
        phase=_opt_int("phase"),
        intent_hint=str(payload.get("intent_hint") or ""),
        lexical_confidence=float(payload.get("lexical_confidence", 1.0)),  # type: ignore[arg-type]
    )
