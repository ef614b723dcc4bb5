import pytest

from polangir.inference import (
    RESOLVED_ARG_TYPES,
    RESOLVED_RETURN_TYPE,
    Substitution,
    TypeInferenceError,
    Unifier,
    apply_type_var_default,
    infer_types,
    is_polymorphic_function,
)
from polangir.ir import Block, FuncOp, FunctionType, Module, OpKind, Operation, Region
from polangir.typesys import (
    BoolType,
    FloatType,
    IntegerType,
    Signedness,
    TypeVarKind,
    TypeVarType,
)

I64 = IntegerType(64, Signedness.SIGNED)
I32 = IntegerType(32, Signedness.SIGNED)
F64 = FloatType(64)


def emit(func, kind, operands=(), result_types=(), **attributes):
    op = Operation(kind, operands, result_types, attributes)
    func.entry_block.operations.append(op)
    return op


def tv(i, kind=TypeVarKind.ANY):
    return TypeVarType(i, kind)


def test_substitution_apply_follows_chain():
    subst = Substitution()
    subst.bind(0, tv(1))
    subst.bind(1, I32)
    assert subst.apply(tv(0)) == I32
    assert subst.apply(tv(5)) == tv(5)
    assert subst.apply(BoolType()) == BoolType()


def test_substitution_lookup_and_contains():
    subst = Substitution()
    subst.bind(3, F64)
    assert subst.contains(3)
    assert not subst.contains(4)
    assert subst.lookup(3) == F64
    assert subst.lookup(4) is None


def test_compose_applies_self_to_other():
    first = Substitution({0: I32})
    second = Substitution({1: tv(0), 0: BoolType()})
    combined = first.compose(second)
    assert combined.lookup(1) == I32
    # bindings of the other win over those of self
    assert combined.lookup(0) == BoolType()


def test_compose_keeps_bindings_only_in_self():
    combined = Substitution({7: F64}).compose(Substitution())
    assert combined.lookup(7) == F64


def test_unify_identical_types():
    subst = Substitution()
    assert Unifier().unify(I64, I64, subst)
    assert len(subst) == 0


def test_unify_distinct_concrete_types_fails():
    assert not Unifier().unify(I64, F64, Substitution())


def test_unify_binds_variable_on_either_side():
    subst = Substitution()
    unifier = Unifier()
    assert unifier.unify(tv(0), I64, subst)
    assert unifier.unify(BoolType(), tv(1), subst)
    assert subst.apply(tv(0)) == I64
    assert subst.apply(tv(1)) == BoolType()


def test_unify_respects_existing_bindings():
    subst = Substitution({0: I64})
    assert not Unifier().unify(tv(0), F64, subst)


def test_unify_occurs_check_same_id():
    # Same id but different kind: the occurs check rejects the binding.
    subst = Substitution()
    assert not Unifier().unify(tv(0), tv(0, TypeVarKind.INTEGER), subst)
    assert not subst.contains(0)


def test_apply_type_var_default():
    assert apply_type_var_default(tv(0, TypeVarKind.INTEGER)) == I64
    assert apply_type_var_default(tv(0, TypeVarKind.FLOAT)) == F64
    assert apply_type_var_default(tv(0)) == tv(0)
    assert apply_type_var_default(I32) == I32


def test_is_polymorphic_function():
    assert is_polymorphic_function(FuncOp("id", FunctionType((tv(0),), (tv(1),))))
    assert is_polymorphic_function(FuncOp("f", FunctionType((I64,), (tv(1),))))
    assert not is_polymorphic_function(FuncOp("g", FunctionType((I64,), (I64,))))
    assert not is_polymorphic_function(
        FuncOp("__polang_entry", FunctionType((), (tv(0),)))
    )


def test_entry_integer_literal_defaults_to_i64():
    entry = FuncOp("__polang_entry", FunctionType((), (tv(0),)))
    const = emit(entry, OpKind.CONSTANT_INTEGER, (), [tv(1, TypeVarKind.INTEGER)], value=42)
    emit(entry, OpKind.RETURN, [const.result])
    infer_types(Module([entry]))
    assert entry.function_type.results == (I64,)
    assert const.result.type == I64


def test_entry_float_literal_defaults_to_f64():
    entry = FuncOp("__polang_entry", FunctionType((), (tv(0),)))
    a = emit(entry, OpKind.CONSTANT_FLOAT, (), [tv(1, TypeVarKind.FLOAT)], value=1.5)
    b = emit(entry, OpKind.CONSTANT_FLOAT, (), [tv(2, TypeVarKind.FLOAT)], value=2.5)
    add = emit(entry, OpKind.ADD, [a.result, b.result], [a.result.type])
    emit(entry, OpKind.RETURN, [add.result])
    infer_types(Module([entry]))
    assert entry.function_type.results == (F64,)
    assert {a.result.type, b.result.type, add.result.type} == {F64}


def test_arithmetic_operand_mismatch_raises():
    entry = FuncOp("__polang_entry", FunctionType((), (I32,)))
    a = emit(entry, OpKind.CONSTANT_INTEGER, (), [I32], value=1)
    b = emit(entry, OpKind.CONSTANT_FLOAT, (), [F64], value=1.0)
    add = emit(entry, OpKind.ADD, [a.result, b.result], [I32])
    emit(entry, OpKind.RETURN, [add.result])
    with pytest.raises(TypeInferenceError) as info:
        infer_types(Module([entry]))
    assert any("operand type mismatch" in e for e in info.value.errors)


def test_return_type_mismatch_raises():
    entry = FuncOp("__polang_entry", FunctionType((), (BoolType(),)))
    c = emit(entry, OpKind.CONSTANT_INTEGER, (), [I64], value=1)
    emit(entry, OpKind.RETURN, [c.result])
    with pytest.raises(TypeInferenceError) as info:
        infer_types(Module([entry]))
    assert any(e.startswith("return type mismatch") for e in info.value.errors)


def test_if_condition_must_be_bool():
    entry = FuncOp("__polang_entry", FunctionType((), (I64,)))
    cond = emit(entry, OpKind.CONSTANT_INTEGER, (), [I64], value=1)
    if_op = Operation(
        OpKind.IF, [cond.result], [I64], regions=[Region([Block()]), Region([Block()])]
    )
    entry.entry_block.operations.append(if_op)
    emit(entry, OpKind.RETURN, [if_op.result])
    with pytest.raises(TypeInferenceError) as info:
        infer_types(Module([entry]))
    assert any("if condition must be bool" in e for e in info.value.errors)


def test_function_without_results_is_not_constrained():
    func = FuncOp("noop", FunctionType((), ()))
    a = emit(func, OpKind.CONSTANT_INTEGER, (), [I32], value=1)
    b = emit(func, OpKind.CONSTANT_FLOAT, (), [F64], value=1.0)
    add = emit(func, OpKind.ADD, [a.result, b.result], [I32])
    emit(func, OpKind.RETURN)
    infer_types(Module([func]))
    assert add.result.type == I32


def test_call_to_concrete_function_resolves_arguments():
    inc = FuncOp("inc", FunctionType((I64,), (I64,)))
    emit(inc, OpKind.RETURN, [inc.entry_block.arguments[0]])
    entry = FuncOp("__polang_entry", FunctionType((), (tv(0),)))
    arg = emit(entry, OpKind.CONSTANT_INTEGER, (), [tv(1, TypeVarKind.INTEGER)], value=5)
    call = emit(entry, OpKind.CALL, [arg.result], [tv(2)], callee="inc")
    emit(entry, OpKind.RETURN, [call.result])
    infer_types(Module([inc, entry]))
    assert arg.result.type == I64
    assert call.result.type == I64
    assert entry.function_type.results == (I64,)
    assert RESOLVED_ARG_TYPES not in call.attributes


def test_call_argument_mismatch_raises():
    inc = FuncOp("inc", FunctionType((I64,), (I64,)))
    emit(inc, OpKind.RETURN, [inc.entry_block.arguments[0]])
    entry = FuncOp("__polang_entry", FunctionType((), (I64,)))
    arg = emit(entry, OpKind.CONSTANT_BOOL, (), [BoolType()], value=True)
    call = emit(entry, OpKind.CALL, [arg.result], [I64], callee="inc")
    emit(entry, OpKind.RETURN, [call.result])
    with pytest.raises(TypeInferenceError) as info:
        infer_types(Module([inc, entry]))
    assert any("argument type mismatch at position 0" in e for e in info.value.errors)


def test_polymorphic_call_is_annotated_and_function_kept():
    identity = FuncOp("identity", FunctionType((tv(0),), (tv(1),)))
    inner = emit(identity, OpKind.CONSTANT_INTEGER, (), [tv(5, TypeVarKind.INTEGER)], value=0)
    emit(identity, OpKind.RETURN, [identity.entry_block.arguments[0]])
    entry = FuncOp("__polang_entry", FunctionType((), (tv(4),)))
    arg = emit(entry, OpKind.CONSTANT_INTEGER, (), [tv(2, TypeVarKind.INTEGER)], value=42)
    call = emit(entry, OpKind.CALL, [arg.result], [tv(3)], callee="identity")
    emit(entry, OpKind.RETURN, [call.result])

    infer_types(Module([identity, entry]))

    assert call.attributes[RESOLVED_ARG_TYPES] == (I64,)
    assert call.attributes[RESOLVED_RETURN_TYPE] == I64
    assert call.result.type == I64
    assert arg.result.type == I64
    assert identity.function_type == FunctionType((tv(0),), (tv(1),))
    assert inner.result.type == tv(5, TypeVarKind.INTEGER)


def test_polymorphic_call_with_bool_argument():
    identity = FuncOp("identity", FunctionType((tv(0),), (tv(1),)))
    emit(identity, OpKind.RETURN, [identity.entry_block.arguments[0]])
    entry = FuncOp("__polang_entry", FunctionType((), (BoolType(),)))
    arg = emit(entry, OpKind.CONSTANT_BOOL, (), [BoolType()], value=True)
    call = emit(entry, OpKind.CALL, [arg.result], [tv(2)], callee="identity")
    emit(entry, OpKind.RETURN, [call.result])

    infer_types(Module([identity, entry]))

    assert call.attributes[RESOLVED_ARG_TYPES] == (BoolType(),)
    assert call.attributes[RESOLVED_RETURN_TYPE] == BoolType()
    assert call.result.type == BoolType()


def test_call_to_unknown_function_is_ignored():
    entry = FuncOp("__polang_entry", FunctionType((), (I64,)))
    call = emit(entry, OpKind.CALL, [], [I64], callee="missing")
    emit(entry, OpKind.RETURN, [call.result])
    infer_types(Module([entry]))
    assert call.attributes == {"callee": "missing"}
    assert entry.function_type.results == (I64,)