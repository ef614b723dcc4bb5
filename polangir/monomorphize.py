"""Specialisation of polymorphic functions for each concrete call signature."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from polangir.inference import (
    ENTRY_FUNCTION,
    RESOLVED_ARG_TYPES,
    RESOLVED_RETURN_TYPE,
    is_polymorphic_function,
)
from polangir.ir import FuncOp, FunctionType, Module, OpKind, Operation
from polangir.typesys import (
    BoolType,
    FloatType,
    IntegerType,
    PolangType,
    TypeVarType,
)

POLYMORPHIC_ATTR = "polang.polymorphic"

_Signature = tuple[tuple[PolangType, ...], PolangType]


def type_string(type: PolangType) -> str:
    """Short name of a concrete type used in mangled names and keys."""
    if isinstance(type, IntegerType):
        return f"{'i' if type.is_signed else 'u'}{type.width}"
    if isinstance(type, FloatType):
        return f"f{type.width}"
    if isinstance(type, BoolType):
        return "bool"
    return "unknown"


def mangled_name(base_name: str, arg_types: Iterable[PolangType]) -> str:
    """Name of a specialisation, e.g. ``identity$i64_bool``."""
    return base_name + "$" + "_".join(type_string(t) for t in arg_types)


def signature_key(arg_types: Iterable[PolangType], return_type: PolangType) -> str:
    """A key that identifies a call signature for deduplication."""
    args = "".join(type_string(t) + "," for t in arg_types)
    return f"{args}->{type_string(return_type)}"


def build_type_var_mapping(
    func: FuncOp, arg_types: Iterable[PolangType], return_type: PolangType
) -> dict[int, PolangType]:
    """Map the type variables of ``func``'s signature to concrete types."""
    signature = func.function_type
    mapping: dict[int, PolangType] = {}
    for param, concrete in zip(signature.inputs, arg_types):
        if isinstance(param, TypeVarType):
            mapping[param.id] = concrete
    if signature.results and isinstance(signature.results[0], TypeVarType):
        mapping[signature.results[0].id] = return_type
    return mapping


def apply_type_mapping(
    type: PolangType, mapping: Mapping[int, PolangType]
) -> PolangType:
    """Replace a mapped type variable; anything else is returned unchanged."""
    if isinstance(type, TypeVarType):
        return mapping.get(type.id, type)
    return type


def _resolved_signature(call: Operation) -> Optional[_Signature]:
    arg_types = call.attributes.get(RESOLVED_ARG_TYPES)
    return_type = call.attributes.get(RESOLVED_RETURN_TYPE)
    if arg_types is None or return_type is None:
        return None
    return tuple(arg_types), return_type


def _polymorphic_calls(module: Module, polymorphic: Mapping[str, FuncOp]):
    for op in module.walk():
        if op.kind is not OpKind.CALL or op.callee not in polymorphic:
            continue
        signature = _resolved_signature(op)
        if signature is not None:
            yield op, signature


def _collect_call_signatures(
    module: Module, polymorphic: Mapping[str, FuncOp]
) -> dict[str, dict[str, _Signature]]:
    signatures: dict[str, dict[str, _Signature]] = {}
    for call, (arg_types, return_type) in _polymorphic_calls(module, polymorphic):
        per_func = signatures.setdefault(call.callee, {})
        per_func.setdefault(
            signature_key(arg_types, return_type), (arg_types, return_type)
        )
    return signatures


def _has_type_var_result(op: Operation) -> bool:
    return any(isinstance(t, TypeVarType) for t in op.result_types)


def _specialize_body(
    func: FuncOp,
    mapping: Mapping[int, PolangType],
    original_name: str,
    new_name: str,
) -> None:
    pending = [op for op in func.walk() if _has_type_var_result(op)]
    for op in pending:
        if op.kind is OpKind.CALL:
            if op.callee == original_name:
                op.callee = new_name
            if op.result is not None:
                op.result.type = apply_type_mapping(op.result.type, mapping)
            continue
        for result in op.results:
            result.type = apply_type_mapping(result.type, mapping)


def _clone_and_specialize(
    original: FuncOp,
    new_name: str,
    arg_types: tuple[PolangType, ...],
    return_type: PolangType,
    module: Module,
) -> FuncOp:
    mapping = build_type_var_mapping(original, arg_types, return_type)
    specialized = FuncOp(
        new_name,
        FunctionType(arg_types, (return_type,)),
        body=original.body.clone(),
    )
    if specialized.body.blocks:
        for argument, concrete in zip(specialized.entry_block.arguments, arg_types):
            argument.type = concrete
    _specialize_body(specialized, mapping, original.name, new_name)
    return module.insert_after(original, specialized)


def _create_specialized_functions(
    module: Module,
    polymorphic: Mapping[str, FuncOp],
    signatures: Mapping[str, Mapping[str, _Signature]],
) -> dict[str, dict[str, str]]:
    specialized: dict[str, dict[str, str]] = {}
    for func_name, per_func in signatures.items():
        original = polymorphic.get(func_name)
        if original is None:
            continue
        for key, (arg_types, return_type) in per_func.items():
            name = mangled_name(func_name, arg_types)
            if module.lookup(name) is None:
                _clone_and_specialize(original, name, arg_types, return_type, module)
            specialized.setdefault(func_name, {})[key] = name
    return specialized


def _update_calls(
    module: Module,
    polymorphic: Mapping[str, FuncOp],
    specialized: Mapping[str, Mapping[str, str]],
) -> None:
    for call, (arg_types, return_type) in list(_polymorphic_calls(module, polymorphic)):
        target = specialized.get(call.callee, {}).get(
            signature_key(arg_types, return_type)
        )
        if target is None:
            continue
        call.callee = target
        if call.result is not None and call.result.type != return_type:
            call.result.type = return_type
        call.attributes.pop(RESOLVED_ARG_TYPES, None)
        call.attributes.pop(RESOLVED_RETURN_TYPE, None)


def _fixup_entry_signature(module: Module) -> None:
    entry = module.lookup(ENTRY_FUNCTION)
    if entry is None:
        return
    signature = entry.function_type
    if not signature.results or not isinstance(signature.results[0], TypeVarType):
        return
    actual: Optional[PolangType] = None
    for op in entry.walk():
        if op.kind is OpKind.RETURN and op.operands:
            actual = op.operands[0].type
    if actual is None or isinstance(actual, TypeVarType):
        return
    entry.set_type(FunctionType(signature.inputs, (actual,)))


def monomorphize(module: Module) -> dict[str, dict[str, str]]:
    """Create a specialised copy of each polymorphic function per call signature.

    Calls annotated by type inference are redirected to the copies, the
    originals are marked polymorphic, and an entry function whose result is
    still a type variable gets the type of the value it returns. Returns,
    for each polymorphic function, its signature keys mapped to the names of
    the specialisations.
    """
    polymorphic = {f.name: f for f in module if is_polymorphic_function(f)}
    if not polymorphic:
        return {}
    signatures = _collect_call_signatures(module, polymorphic)
    specialized = _create_specialized_functions(module, polymorphic, signatures)
    _update_calls(module, polymorphic, specialized)
    for func in polymorphic.values():
        func.attributes[POLYMORPHIC_ATTR] = True
    _fixup_entry_signature(module)
    return specialized