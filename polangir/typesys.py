"""Types of the Polang IR and conversion to machine-level type names."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

DEFAULT_INT_WIDTH = 64


class Signedness(Enum):
    """Signedness of an integer type."""

    SIGNED = "signed"
    UNSIGNED = "unsigned"


class TypeVarKind(Enum):
    """Constraint on what a type variable may be resolved to."""

    ANY = "any"
    INTEGER = "integer"
    FLOAT = "float"


@dataclass(frozen=True)
class IntegerType:
    """A fixed-width integer type."""

    width: int
    signedness: Signedness = Signedness.SIGNED

    @property
    def is_signed(self) -> bool:
        return self.signedness is Signedness.SIGNED

    def __str__(self) -> str:
        return f"{'i' if self.is_signed else 'u'}{self.width}"


@dataclass(frozen=True)
class FloatType:
    """A floating point type of the given width."""

    width: int

    def __str__(self) -> str:
        return f"f{self.width}"


@dataclass(frozen=True)
class BoolType:
    """The boolean type."""

    def __str__(self) -> str:
        return "bool"


@dataclass(frozen=True)
class TypeVarType:
    """A type variable awaiting resolution by inference."""

    id: int
    kind: TypeVarKind = TypeVarKind.ANY

    def __str__(self) -> str:
        if self.kind is TypeVarKind.ANY:
            return f"typevar<{self.id}>"
        return f"typevar<{self.id}, {self.kind.value}>"


PolangType = Union[IntegerType, FloatType, BoolType, TypeVarType]


class TypeConverter:
    """Hands out fresh type variables and lowers Polang types."""

    def __init__(self) -> None:
        self._next_type_var_id = 0

    def fresh_type_var(self, kind: TypeVarKind = TypeVarKind.ANY) -> TypeVarType:
        """Return a type variable with an id never handed out before."""
        type_var = TypeVarType(self._next_type_var_id, kind)
        self._next_type_var_id += 1
        return type_var

    def default_type(self) -> IntegerType:
        """The type used where nothing else is known: signed 64-bit."""
        return IntegerType(DEFAULT_INT_WIDTH, Signedness.SIGNED)

    def convert(self, polang_type: PolangType) -> str:
        """Lower a Polang type to the name of its machine-level type."""
        if isinstance(polang_type, IntegerType):
            return f"i{polang_type.width}"
        if isinstance(polang_type, FloatType):
            return "f32" if polang_type.width == 32 else "f64"
        if isinstance(polang_type, BoolType):
            return "i1"
        return f"i{DEFAULT_INT_WIDTH}"