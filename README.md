# polangir

A small, self-contained intermediate representation for the Polang language,
together with the two passes that make its types concrete:

- **Type inference** (`polangir.inference.infer_types`) collects constraints
  from function bodies (return values, arithmetic operands and results, `if`
  conditions) and from call sites, unifies them, and rewrites every type
  variable it can resolve. Integer-kind type variables default to `i64` and
  float-kind ones to `f64`. Polymorphic functions, whose signatures still hold
  type variables, are left as they are. Calls to them are annotated with the
  argument and return types they resolve to. The pass returns the
  `Substitution` it built.
- **Monomorphization** (`polangir.monomorphize.monomorphize`) creates a
  specialized copy of each polymorphic function for every distinct call
  signature, for example `identity$i64` or `pair$i64_bool`. It redirects the
  calls to the copy and marks the original with the `polang.polymorphic`
  attribute. If the result type of the entry function `__polang_entry` is still
  a type variable, it is set to the type of the value the function returns.
  The pass returns, for each polymorphic function, its signature keys mapped to
  the names of the specializations.

## Modules

- `polangir.typesys` holds the types `IntegerType`, `FloatType`, `BoolType` and
  `TypeVarType`, along with `Signedness` and `TypeVarKind`. It also holds
  `TypeConverter`:
  - `fresh_type_var(kind)` hands out type variables with new ids.
  - `default_type()` gives the signed 64-bit integer type.
  - `convert(t)` gives the name of the lowered machine type, such as `"i32"`,
    `"f64"` or `"i1"`.
- `polangir.ir` holds `Value`, `Operation`, `OpKind`, `Block`, `Region`,
  `FunctionType`, `FuncOp` and `Module`.
  - Operations, regions and functions can be walked.
  - Regions and operations can be deep-cloned.
  - A module keeps its functions uniquely named, in order.
- `polangir.inference` holds `Substitution`, `Unifier`,
  `apply_type_var_default`, `is_polymorphic_function`, `infer_types`, and
  `TypeInferenceError`. That error is raised with the list of every constraint
  that failed.
- `polangir.monomorphize` holds `monomorphize` and the helpers it uses:
  - `type_string`
  - `mangled_name`
  - `signature_key`
  - `build_type_var_mapping`
  - `apply_type_mapping`

## Usage

```python
from polangir.inference import infer_types
from polangir.ir import FuncOp, FunctionType, Module, OpKind, Operation
from polangir.monomorphize import monomorphize
from polangir.typesys import TypeConverter, TypeVarKind

types = TypeConverter()

# let identity(x) = x
t = types.fresh_type_var()
identity = FuncOp("identity", FunctionType((t,), (t,)))
x = identity.entry_block.arguments[0]
identity.entry_block.operations.append(Operation(OpKind.RETURN, [x]))

# identity(42)
entry = FuncOp("__polang_entry", FunctionType((), (types.fresh_type_var(),)))
const = Operation(
    OpKind.CONSTANT_INTEGER,
    result_types=[types.fresh_type_var(TypeVarKind.INTEGER)],
    attributes={"value": 42},
)
call = Operation(
    OpKind.CALL, [const.result], [types.fresh_type_var()], {"callee": "identity"}
)
entry.entry_block.operations += [const, call, Operation(OpKind.RETURN, [call.result])]

module = Module([identity, entry])
infer_types(module)    # raises TypeInferenceError on a type mismatch
monomorphize(module)

assert call.callee == "identity$i64"
assert str(entry.function_type) == "() -> (i64)"
```

## What it does not do

The package works only on IR that is already built. It does not include:

- a lexer, parser or type checker for Polang source text;
- a generator that builds IR from a syntax tree;
- lowering to machine code, execution, or a command-line compiler or REPL.

Modules are built in Python out of `FuncOp` and `Operation` objects, as shown
above.

## Installation

```
pip install .
```

The package has no runtime dependencies. To install it with what the tests need
and run them:

```
pip install ".[test]"
pytest
```