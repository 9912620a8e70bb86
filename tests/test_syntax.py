from toyc.lexer import Location
from toyc.syntax import (
    BinaryExpr,
    CallExpr,
    Expr,
    Function,
    LiteralExpr,
    Module,
    NumberExpr,
    PrintExpr,
    Prototype,
    ReturnExpr,
    VarDeclExpr,
    VariableExpr,
    VarType,
)

LOC = Location("test.toy", 1, 1)


def make_function(name, body=None):
    return Function(Prototype(LOC, name, [VariableExpr(LOC, "a")]), body or [])


def test_module_iterates_functions_in_order():
    functions = [make_function("first"), make_function("second"), make_function("main")]
    module = Module(functions)
    assert [f.proto.name for f in module] == ["first", "second", "main"]


def test_empty_module_iterates_nothing():
    assert list(Module([])) == []


def test_vartype_default_shape_is_empty_and_not_shared():
    a = VarType()
    b = VarType()
    a.shape.append(2)
    assert a.shape == [2]
    assert b.shape == []


def test_return_expression_defaults_to_none():
    ret = ReturnExpr(LOC)
    assert ret.expr is None
    assert ret.location == LOC


def test_nested_literal_keeps_values_and_dims():
    inner = [LiteralExpr(LOC, [NumberExpr(LOC, 1.0), NumberExpr(LOC, 2.0)], [2])] * 3
    outer = LiteralExpr(LOC, inner, [3, 2])
    assert outer.dims == [3, 2]
    assert [n.value for lit in outer.values for n in lit.values] == [1.0, 2.0] * 3


def test_nodes_compare_by_value():
    lhs = BinaryExpr(LOC, "+", VariableExpr(LOC, "a"), NumberExpr(LOC, 1.0))
    rhs = BinaryExpr(LOC, "+", VariableExpr(LOC, "a"), NumberExpr(LOC, 1.0))
    other = BinaryExpr(LOC, "*", VariableExpr(LOC, "a"), NumberExpr(LOC, 1.0))
    assert lhs == rhs
    assert not lhs == other


def test_function_body_holds_statements():
    decl = VarDeclExpr(LOC, "x", VarType([2, 3]), CallExpr(LOC, "f", []))
    body = [decl, PrintExpr(LOC, VariableExpr(LOC, "x")), ReturnExpr(LOC)]
    func = make_function("main", body)
    assert func.body[0].type.shape == [2, 3]
    assert func.body[1].arg.name == "x"
    assert all(isinstance(stmt, Expr) for stmt in func.body)
    assert [stmt.location for stmt in func.body] == [LOC, LOC, LOC]