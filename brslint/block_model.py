"""
Block Model: per-function flow records shared by the trackers.

One StatementInfo is created per statement visited while walking a function
body.  They live in an arena owned by FlowState and point at their parent
by arena index; the stack holds the indices of the currently open blocks.
Everything here is discarded once the function has been analysed.
"""

from enum import Enum
from typing import Dict, Iterator, List, Optional
from dataclasses import dataclass, field

from brslint.brs_ast import FunctionExpression, Range, ReturnStatement, Statement, ThrowStatement


class VarRestriction(Enum):
    NONE = 0
    ITERATOR = 1            # loop counter / for-each item
    CATCHED_ERROR = 2       # catch clause variable


@dataclass
class NarrowingInfo:
    """Inside ``block`` the variable ``text`` is known to be (in)valid."""
    text: str
    range: Range
    type: str               # "valid" | "invalid"
    block: Statement

    def opposite(self) -> "NarrowingInfo":
        return NarrowingInfo(self.text, self.range,
                             "valid" if self.type == "invalid" else "invalid",
                             self.block)


@dataclass
class VarInfo:
    name: str               # original casing
    range: Range
    is_param: bool = False
    is_unsafe: bool = False
    is_used: bool = False
    restriction: VarRestriction = VarRestriction.NONE
    met_branches: int = 1
    narrowed: Optional[NarrowingInfo] = None
    order: int = 0          # creation sequence, compared against labels
    parent: Optional[int] = None


@dataclass
class StatementInfo:
    stat: Statement
    index: int
    parent: Optional[int] = None
    branches: int = 1
    returns: bool = False
    locals: Optional[Dict[str, VarInfo]] = None
    narrows: Optional[List[NarrowingInfo]] = None


@dataclass
class ReturnInfo:
    stat: ReturnStatement
    has_value: bool


@dataclass
class ThrowInfo:
    stat: ThrowStatement


@dataclass
class FlowState:
    """Mutable walk state for one function body."""
    func: FunctionExpression
    blocks: List[StatementInfo] = field(default_factory=list)
    stack: List[int] = field(default_factory=list)
    order: int = 0
    labels: Dict[str, int] = field(default_factory=dict)
    last_label: Optional[int] = None

    def create(self, stat: Statement, branches: int) -> StatementInfo:
        info = StatementInfo(stat=stat, index=len(self.blocks),
                             parent=self.stack[-1] if self.stack else None,
                             branches=branches)
        self.blocks.append(info)
        return info

    @property
    def parent(self) -> Optional[StatementInfo]:
        """The innermost open block."""
        return self.blocks[self.stack[-1]] if self.stack else None

    def push(self, info: StatementInfo):
        self.stack.append(info.index)

    def pop(self) -> StatementInfo:
        return self.blocks[self.stack.pop()]

    def enclosing(self) -> Iterator[StatementInfo]:
        """Open blocks, innermost first."""
        for index in reversed(self.stack):
            yield self.blocks[index]

    def next_order(self) -> int:
        self.order += 1
        return self.order
