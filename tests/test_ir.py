import pytest

from toyc.ir import (
    AddOp,
    CastOp,
    ConstantOp,
    FuncOp,
    FunctionType,
    GenericCallOp,
    ModuleOp,
    MulOp,
    PrintOp,
    ReshapeOp,
    ReturnOp,
    TensorType,
    TransposeOp,
    Value,
    VerificationError,
    are_cast_compatible,
    print_module,
)

UNRANKED = TensorType()
T23 = TensorType((2, 3))
T32 = TensorType((3, 2))


def _main_with(*ops):
    func = FuncOp("main", FunctionType())
    for op in ops:
        func.append(op)
    func.append(ReturnOp())
    return ModuleOp([func])


def test_tensor_type_text():
    assert str(UNRANKED) == "tensor<*xf64>"
    assert str(T23) == "tensor<2x3xf64>"


def test_tensor_type_equality_and_rank():
    assert TensorType([2, 3]) == T23
    assert T23.rank == 2
    assert T23.num_elements == 6
    with pytest.raises(ValueError):
        UNRANKED.rank


def test_cast_compatibility():
    assert are_cast_compatible([UNRANKED], [T23])
    assert are_cast_compatible([T23], [UNRANKED])
    assert are_cast_compatible([T23], [T23])
    assert not are_cast_compatible([T23], [T32])
    assert not are_cast_compatible([T23, T23], [T23])
    assert not are_cast_compatible([FunctionType()], [T23])
    assert not are_cast_compatible([TensorType((2,), "f32")], [TensorType((2,))])


def test_binary_infer_shapes_takes_lhs_type():
    c = ConstantOp(range(6), T23)
    add = AddOp(c.result, c.result)
    mul = MulOp(c.result, c.result)
    assert add.result.type == UNRANKED
    add.infer_shapes()
    mul.infer_shapes()
    assert add.result.type == T23
    assert mul.result.type == T23
    assert AddOp.infers_shapes


def test_transpose_infer_reverses_shape():
    c = ConstantOp(range(6), T23)
    t = TransposeOp(c.result)
    t.infer_shapes()
    assert t.result.type == T32
    t.verify()
    assert t.result.type.shape == tuple(reversed(c.result.type.shape))


def test_transpose_verify_mismatch():
    c = ConstantOp(range(6), T23)
    t = TransposeOp(c.result)
    t.result.type = T23
    with pytest.raises(VerificationError, match="transpose of the input"):
        t.verify()


def test_cast_infer_and_verify():
    c = ConstantOp(range(6), T23)
    cast = CastOp(c.result, UNRANKED)
    cast.verify()
    cast.infer_shapes()
    assert cast.result.type == T23
    bad = CastOp(c.result, T32)
    with pytest.raises(VerificationError):
        bad.verify()


def test_reshape_has_no_shape_inference():
    c = ConstantOp(range(6), T23)
    r = ReshapeOp(c.result, T32)
    assert not r.infers_shapes
    with pytest.raises(TypeError):
        r.infer_shapes()


def test_constant_size_mismatch():
    with pytest.raises(ValueError):
        ConstantOp([1.0, 2.0], T23)


def test_constant_verify_rank_mismatch():
    c = ConstantOp(range(6), T23, result_type=TensorType((6,)))
    with pytest.raises(VerificationError, match="must match the one of the attached"):
        c.verify()


def test_constant_verify_dimension_mismatch():
    c = ConstantOp(range(6), T23, result_type=T32)
    with pytest.raises(VerificationError, match="mismatches its attribute at dimension 0"):
        c.verify()


def test_scalar_constant():
    c = ConstantOp.scalar(5.5)
    assert c.result.type == TensorType(())
    assert c.data == (5.5,)


def test_return_more_than_one_operand():
    c = ConstantOp.scalar(1.0)
    func = FuncOp("f", FunctionType((), (UNRANKED,)))
    func.append(c)
    ret = func.append(ReturnOp([c.result, c.result]))
    with pytest.raises(VerificationError, match="expects at most 1 return operand"):
        ret.verify()


def test_return_count_must_match_function():
    c = ConstantOp.scalar(1.0)
    func = FuncOp("main", FunctionType())
    func.append(c)
    ret = func.append(ReturnOp([c.result]))
    with pytest.raises(VerificationError, match="does not return the same number"):
        ret.verify()


def test_return_type_mismatch():
    c = ConstantOp(range(6), T23)
    func = FuncOp("f", FunctionType((), (T32,)))
    func.append(c)
    ret = func.append(ReturnOp([c.result]))
    with pytest.raises(VerificationError, match="doesn't match function result type"):
        ret.verify()


def test_replace_all_uses_with():
    a = ConstantOp.scalar(1.0)
    b = ConstantOp.scalar(2.0)
    add = AddOp(a.result, a.result)
    assert add.operands == [a.result, a.result]
    a.result.replace_all_uses_with(b.result)
    assert add.operands == [b.result, b.result]
    assert not a.result.has_uses
    assert b.result.users == (add, add)


def test_erase_requires_no_uses():
    a = ConstantOp.scalar(1.0)
    func = FuncOp("main", FunctionType())
    func.append(a)
    p = func.append(PrintOp(a.result))
    with pytest.raises(ValueError):
        a.erase()
    p.erase()
    a.erase()
    assert func.body == []


def test_module_verify_missing_terminator():
    func = FuncOp("main", FunctionType())
    func.append(ConstantOp.scalar(1.0))
    with pytest.raises(VerificationError, match="no terminator"):
        ModuleOp([func]).verify()


def test_module_verify_dominance():
    outside = ConstantOp.scalar(1.0)
    module = _main_with(PrintOp(outside.result))
    with pytest.raises(VerificationError, match="does not dominate"):
        module.verify()


def test_module_verify_duplicate_symbols():
    module = ModuleOp()
    for _ in range(2):
        f = FuncOp("f", FunctionType())
        f.append(ReturnOp())
        module.append(f)
    with pytest.raises(VerificationError, match="redefinition"):
        module.verify()


def test_lookup_and_erase_function():
    module = _main_with()
    main = module.lookup("main")
    assert main is module.functions[0]
    main.erase()
    assert module.lookup("main") is None


def test_print_module_contents():
    c = ConstantOp(range(6), T23)
    t = TransposeOp(c.result)
    add = AddOp(c.result, t.result)
    module = _main_with(c, t, add, PrintOp(add.result))
    module.verify()
    text = print_module(module)
    lines = text.splitlines()
    assert lines[0] == "module {"
    assert lines[-1] == "}"
    assert "toy.func @main() {" in text
    assert "%0 = toy.constant dense<" in text
    assert f"%2 = toy.add %0, %1 : ({T23}, {UNRANKED}) -> {UNRANKED}" in text
    assert "toy.print %2" in text
    assert "toy.return" in text
    assert str(module) == text


def test_print_private_function_and_call():
    callee = FuncOp("f", FunctionType((UNRANKED,), (UNRANKED,)), private=True)
    callee.append(ReturnOp([callee.arguments[0]]))
    main = FuncOp("main", FunctionType())
    c = main.append(ConstantOp.scalar(2.0))
    main.append(GenericCallOp("f", [c.result]))
    main.append(ReturnOp())
    module = ModuleOp([callee, main])
    module.verify()
    text = print_module(module)
    assert f"toy.func private @f(%arg0: {UNRANKED}) -> {UNRANKED}" in text
    assert "toy.generic_call @f(%0)" in text
    assert "toy.return %arg0" in text


def test_splat_constant_prints_single_value():
    c = ConstantOp([3.0] * 6, T23)
    assert c.dense_text() == f"dense<3.000000e+00> : {T23}"


def test_function_arguments_follow_signature():
    func = FuncOp("g", FunctionType((UNRANKED, T23)))
    assert [a.type for a in func.arguments] == [UNRANKED, T23]
    assert all(isinstance(a, Value) and a.owner is None for a in func.arguments)