"""Hindley-Milner style type inference over the Polang IR."""

from __future__ import annotations

from typing import Iterator, Optional

from polangir.ir import FuncOp, FunctionType, Module, OpKind, Operation
from polangir.typesys import (
    BoolType,
    FloatType,
    IntegerType,
    PolangType,
    Signedness,
    TypeVarKind,
    TypeVarType,
)

ENTRY_FUNCTION = "__polang_entry"
RESOLVED_ARG_TYPES = "polang.resolved_arg_types"
RESOLVED_RETURN_TYPE = "polang.resolved_return_type"


class TypeInferenceError(Exception):
    """Raised when the constraints of a module cannot be satisfied."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def _contains_type_var(type_: PolangType) -> bool:
    return isinstance(type_, TypeVarType)


def apply_type_var_default(type: PolangType) -> PolangType:
    """Resolve integer and float type variables to i64 and f64."""
    if isinstance(type, TypeVarType):
        if type.kind is TypeVarKind.INTEGER:
            return IntegerType(64, Signedness.SIGNED)
        if type.kind is TypeVarKind.FLOAT:
            return FloatType(64)
    return type


def is_polymorphic_function(func: FuncOp) -> bool:
    """True if the signature holds a type variable; never for the entry."""
    if func.name == ENTRY_FUNCTION:
        return False
    signature = func.function_type
    return any(_contains_type_var(t) for t in signature.inputs) or any(
        _contains_type_var(t) for t in signature.results
    )


class Substitution:
    """A mapping from type variable ids to types."""

    def __init__(self, bindings: Optional[dict[int, PolangType]] = None) -> None:
        self._bindings: dict[int, PolangType] = dict(bindings or {})

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[tuple[int, PolangType]]:
        return iter(self._bindings.items())

    def __repr__(self) -> str:
        inner = ", ".join(f"typevar<{v}> = {t}" for v, t in self._bindings.items())
        return f"Substitution({inner})"

    def bind(self, var: int, type: PolangType) -> None:
        self._bindings[var] = type

    def lookup(self, var: int) -> Optional[PolangType]:
        return self._bindings.get(var)

    def contains(self, var: int) -> bool:
        return var in self._bindings

    def apply(self, type: PolangType) -> PolangType:
        """Resolve a type variable through the bindings, transitively."""
        while isinstance(type, TypeVarType):
            bound = self.lookup(type.id)
            if bound is None:
                break
            type = bound
        return type

    def compose(self, other: "Substitution") -> "Substitution":
        """Return the substitution that applies ``other`` then this one."""
        result = Substitution(
            {var: self.apply(t) for var, t in other._bindings.items()}
        )
        for var, t in self._bindings.items():
            if not result.contains(var):
                result.bind(var, t)
        return result


class Unifier:
    """Unifies pairs of types, extending a substitution."""

    def unify(self, t1: PolangType, t2: PolangType, subst: Substitution) -> bool:
        """Make ``t1`` and ``t2`` equal under ``subst``; False if impossible."""
        s1 = subst.apply(t1)
        s2 = subst.apply(t2)
        if s1 == s2:
            return True
        if isinstance(s1, TypeVarType):
            return self._unify_var(s1.id, s2, subst)
        if isinstance(s2, TypeVarType):
            return self._unify_var(s2.id, s1, subst)
        return False

    @staticmethod
    def _occurs_in(var: int, type_: PolangType) -> bool:
        return isinstance(type_, TypeVarType) and type_.id == var

    def _unify_var(self, var: int, type_: PolangType, subst: Substitution) -> bool:
        if self._occurs_in(var, type_):
            return False
        subst.bind(var, type_)
        return True


def _collect_function_constraints(
    func: FuncOp, subst: Substitution, unifier: Unifier, errors: list[str]
) -> None:
    signature = func.function_type
    if not signature.results:
        return
    expected = signature.results[0]
    ops = list(func.walk())

    for op in ops:
        if op.kind is OpKind.RETURN and op.operands:
            actual = op.operands[0].type
            if not unifier.unify(expected, actual, subst):
                errors.append(
                    f"return type mismatch: expected {expected} but got {actual}"
                )

    for op in ops:
        if op.kind.is_arithmetic:
            lhs = op.operands[0].type
            rhs = op.operands[1].type
            res = op.results[0].type
            if not unifier.unify(lhs, rhs, subst):
                errors.append(f"operand type mismatch: {lhs} vs {rhs}")
            if not unifier.unify(lhs, res, subst):
                errors.append(f"result type mismatch: {lhs} vs {res}")

    for op in ops:
        if op.kind is OpKind.IF:
            cond = op.operands[0].type
            if not unifier.unify(cond, BoolType(), subst):
                errors.append(f"if condition must be bool, got {cond}")


def _collect_call_constraints(
    call: Operation,
    module: Module,
    subst: Substitution,
    unifier: Unifier,
    errors: list[str],
) -> None:
    callee = module.lookup(call.callee) if call.callee is not None else None
    if callee is None or is_polymorphic_function(callee):
        return
    signature = callee.function_type
    for position, (arg, param) in enumerate(zip(call.operands, signature.inputs)):
        if not unifier.unify(arg.type, param, subst):
            errors.append(
                f"argument type mismatch at position {position}: "
                f"{arg.type} vs {param}"
            )
    if call.result is not None and signature.results:
        result_type = call.result.type
        return_type = signature.results[0]
        if not unifier.unify(result_type, return_type, subst):
            errors.append(f"return type mismatch: {result_type} vs {return_type}")


def _resolve(type_: PolangType, subst: Substitution) -> PolangType:
    return apply_type_var_default(subst.apply(type_))


def _annotate_polymorphic_call(
    call: Operation, callee: FuncOp, subst: Substitution
) -> None:
    signature = callee.function_type
    call.attributes[RESOLVED_ARG_TYPES] = tuple(
        _resolve(arg.type, subst) for arg in call.operands
    )

    local = Substitution()
    for param, arg in zip(signature.inputs, call.operands):
        if isinstance(param, TypeVarType):
            local.bind(param.id, subst.apply(arg.type))
    combined = local.compose(subst)

    if call.result is not None:
        resolved = apply_type_var_default(combined.apply(signature.results[0]))
        call.attributes[RESOLVED_RETURN_TYPE] = resolved
        if not _contains_type_var(resolved):
            call.result.type = resolved


def _apply_substitution(module: Module, subst: Substitution) -> None:
    polymorphic = {f.name for f in module if is_polymorphic_function(f)}

    for op in module.walk():
        if op.kind is OpKind.CALL and op.callee in polymorphic:
            callee = module.lookup(op.callee)
            if callee is not None:
                _annotate_polymorphic_call(op, callee, subst)

    for func in module:
        if func.name in polymorphic:
            continue
        old = func.function_type
        new = FunctionType(
            tuple(_resolve(t, subst) for t in old.inputs),
            tuple(_resolve(t, subst) for t in old.results),
        )
        if new != old:
            func.set_type(new)
            if func.body.blocks:
                for arg, type_ in zip(func.entry_block.arguments, new.inputs):
                    arg.type = type_

    for func in module:
        if func.name in polymorphic:
            continue
        for op in func.walk():
            for result in op.results:
                result.type = _resolve(result.type, subst)


def infer_types(module: Module) -> Substitution:
    """Resolve the type variables of ``module`` in place.

    Polymorphic functions keep their type variables; calls to them are
    annotated with the resolved argument and return types. Raises
    TypeInferenceError listing every constraint that failed in a phase.
    """
    subst = Substitution()
    unifier = Unifier()
    errors: list[str] = []

    for func in module:
        _collect_function_constraints(func, subst, unifier, errors)
    if errors:
        raise TypeInferenceError(errors)

    for op in module.walk():
        if op.kind is OpKind.CALL:
            _collect_call_constraints(op, module, subst, unifier, errors)
    if errors:
        raise TypeInferenceError(errors)

    _apply_substitution(module, subst)
    return subst