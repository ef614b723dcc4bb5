"""A small SSA intermediate representation for Polang programs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Optional

from polangir.typesys import PolangType


@dataclass(eq=False)
class Value:
    """An SSA value; its type may be changed in place by passes."""

    type: PolangType

    def __repr__(self) -> str:
        return f"Value({self.type})"


class OpKind(Enum):
    """The operations of the Polang dialect."""

    CONSTANT_INTEGER = "polang.constant.integer"
    CONSTANT_FLOAT = "polang.constant.float"
    CONSTANT_BOOL = "polang.constant.bool"
    ADD = "polang.add"
    SUB = "polang.sub"
    MUL = "polang.mul"
    DIV = "polang.div"
    CMP = "polang.cmp"
    CAST = "polang.cast"
    IF = "polang.if"
    YIELD = "polang.yield"
    CALL = "polang.call"
    RETURN = "polang.return"

    @property
    def is_arithmetic(self) -> bool:
        return self in (OpKind.ADD, OpKind.SUB, OpKind.MUL, OpKind.DIV)


class Operation:
    """An operation with operands, typed results, attributes and regions."""

    def __init__(
        self,
        kind: OpKind,
        operands: Iterable[Value] = (),
        result_types: Iterable[PolangType] = (),
        attributes: Optional[dict[str, Any]] = None,
        regions: Iterable["Region"] = (),
    ) -> None:
        self.kind = kind
        self.operands = list(operands)
        self.results = [Value(t) for t in result_types]
        self.attributes = dict(attributes or {})
        self.regions = list(regions)

    def __repr__(self) -> str:
        return f"Operation({self.kind.value}, results={self.result_types})"

    @property
    def result(self) -> Optional[Value]:
        return self.results[0] if self.results else None

    @property
    def result_types(self) -> tuple[PolangType, ...]:
        return tuple(r.type for r in self.results)

    @property
    def callee(self) -> Optional[str]:
        return self.attributes.get("callee")

    @callee.setter
    def callee(self, name: str) -> None:
        self.attributes["callee"] = name

    def walk(self) -> Iterator["Operation"]:
        """Yield nested operations first, then this one."""
        for region in self.regions:
            for block in region.blocks:
                for op in list(block.operations):
                    yield from op.walk()
        yield self

    def clone(self, mapping: Optional[dict[Value, Value]] = None) -> "Operation":
        """Deep-copy the operation, remapping operands and recording results."""
        if mapping is None:
            mapping = {}
        new_op = Operation(
            self.kind,
            [mapping.get(v, v) for v in self.operands],
            self.result_types,
            self.attributes,
        )
        for old, new in zip(self.results, new_op.results):
            mapping[old] = new
        new_op.regions = [region.clone(mapping) for region in self.regions]
        return new_op


@dataclass(eq=False)
class Block:
    """A list of operations with block arguments."""

    arguments: list[Value] = field(default_factory=list)
    operations: list[Operation] = field(default_factory=list)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)


@dataclass(eq=False)
class Region:
    """A list of blocks owned by an operation or function."""

    blocks: list[Block] = field(default_factory=list)

    @property
    def entry(self) -> Block:
        if not self.blocks:
            raise ValueError("region has no blocks")
        return self.blocks[0]

    def clone(self, mapping: Optional[dict[Value, Value]] = None) -> "Region":
        """Deep-copy the region, remapping values defined inside it."""
        if mapping is None:
            mapping = {}
        new_blocks = []
        for block in self.blocks:
            new_args = [Value(arg.type) for arg in block.arguments]
            mapping.update(zip(block.arguments, new_args))
            new_blocks.append(Block(new_args))
        for block, new_block in zip(self.blocks, new_blocks):
            new_block.operations = [op.clone(mapping) for op in block.operations]
        return Region(new_blocks)


@dataclass(frozen=True)
class FunctionType:
    """Parameter and result types of a function."""

    inputs: tuple[PolangType, ...] = ()
    results: tuple[PolangType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "results", tuple(self.results))

    def __str__(self) -> str:
        ins = ", ".join(map(str, self.inputs))
        outs = ", ".join(map(str, self.results))
        return f"({ins}) -> ({outs})"


class FuncOp:
    """A named function; its body gets an entry block unless one is given."""

    def __init__(
        self,
        name: str,
        function_type: FunctionType,
        captures: Iterable[str] = (),
        body: Optional[Region] = None,
        attributes: Optional[dict[str, Any]] = None,
    ) -> None:
        self.name = name
        self.function_type = function_type
        self.captures = tuple(captures)
        self.attributes = dict(attributes or {})
        if body is None:
            body = Region([Block([Value(t) for t in function_type.inputs])])
        self.body = body

    def __repr__(self) -> str:
        return f"FuncOp({self.name!r}, {self.function_type})"

    @property
    def entry_block(self) -> Block:
        return self.body.entry

    def walk(self) -> Iterator[Operation]:
        """Yield every operation in the body, nested ones before their parent."""
        for block in self.body.blocks:
            for op in list(block.operations):
                yield from op.walk()

    def set_type(self, function_type: FunctionType) -> None:
        """Replace the signature; block arguments are left to the caller."""
        self.function_type = function_type


class Module:
    """An ordered collection of uniquely named functions."""

    def __init__(self, functions: Iterable[FuncOp] = ()) -> None:
        self.functions: list[FuncOp] = []
        for func in functions:
            self.add(func)

    def __iter__(self) -> Iterator[FuncOp]:
        return iter(self.functions)

    def __len__(self) -> int:
        return len(self.functions)

    def walk(self) -> Iterator[Operation]:
        """Yield every operation of every function."""
        for func in list(self.functions):
            yield from func.walk()

    def lookup(self, name: str) -> Optional[FuncOp]:
        return next((f for f in self.functions if f.name == name), None)

    def _check_new(self, func: FuncOp) -> None:
        if self.lookup(func.name) is not None:
            raise ValueError(f"function {func.name!r} already defined")

    def add(self, func: FuncOp) -> FuncOp:
        self._check_new(func)
        self.functions.append(func)
        return func

    def insert_after(self, anchor: FuncOp, func: FuncOp) -> FuncOp:
        self._check_new(func)
        for index, existing in enumerate(self.functions):
            if existing is anchor:
                self.functions.insert(index + 1, func)
                return func
        raise ValueError(f"function {anchor.name!r} is not in this module")