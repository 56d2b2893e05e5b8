from __future__ import annotations

import textwrap

import pytest

from pipescript.errors import ParseError, UnexpectedToken, UnusedKeyword
from pipescript.script import ast, parse, parse_expression


def parse_dedent(source: str) -> ast.Script:
    return parse(textwrap.dedent(source))


def test_trailing_block_becomes_last_argument() -> None:
    script = parse('step("go") { cmd("ls") }')

    (statement,) = script.body
    assert isinstance(statement, ast.ExprStmt)
    call = statement.expr
    assert isinstance(call, ast.Call)
    assert call.name == "step"
    assert isinstance(call.args[0], ast.Literal)
    assert call.args[0].value == "go"
    block = call.args[1]
    assert isinstance(block, ast.Block)
    inner = block.body[0]
    assert isinstance(inner, ast.ExprStmt)
    assert inner.expr.name == "cmd"


def test_bare_name_with_block_is_a_call() -> None:
    script = parse("run { println(1) }")

    call = script.body[0].expr
    assert isinstance(call, ast.Call)
    assert call.name == "run"
    assert len(call.args) == 1
    assert isinstance(call.args[0], ast.Block)


def test_functions_are_hoisted_out_of_the_body() -> None:
    script = parse_dedent(
        """
        println(greet("x"))
        fn greet(name: String, suffix) {
            return "hi " + name
        }
        """
    )

    assert len(script.body) == 1
    definition = script.functions["greet"]
    assert [param.name for param in definition.params] == ["name", "suffix"]
    assert definition.params[0].declared_type == "String"
    assert definition.params[1].declared_type is None
    assert isinstance(definition.body[0], ast.Return)


def test_operator_precedence() -> None:
    expr = parse_expression("1 + 2 * 3 == 7 || false")

    assert isinstance(expr, ast.Binary)
    assert expr.operator == "||"
    equality = expr.left
    assert equality.operator == "=="
    addition = equality.left
    assert addition.operator == "+"
    assert addition.right.operator == "*"


def test_unary_and_grouping() -> None:
    expr = parse_expression("-(1 + 2) * !x")

    assert expr.operator == "*"
    assert isinstance(expr.left, ast.Unary)
    assert expr.left.operator == "-"
    assert isinstance(expr.left.operand, ast.Binary)
    assert isinstance(expr.right, ast.Unary)
    assert expr.right.operator == "!"


def test_minus_on_a_new_line_starts_a_statement() -> None:
    script = parse("let a = b\n-1\nlet c = a -\n    2")

    first, second, third = script.body
    assert isinstance(first, ast.Let)
    assert isinstance(first.value, ast.Variable)
    assert isinstance(second, ast.ExprStmt)
    assert isinstance(second.expr, ast.Unary)
    assert isinstance(third.value, ast.Binary)
    assert third.value.operator == "-"


def test_deeply_nested_script_is_a_parse_error() -> None:
    source = "(" * 2000 + "1" + ")" * 2000

    with pytest.raises(ParseError, match="nested too deeply"):
        parse(source)


def test_if_condition_keeps_block_as_branch_body() -> None:
    script = parse_dedent(
        """
        if ready() {
            println("a")
        } else if x > 1 {
            println("b")
        } else {
            println("c")
        }
        """
    )

    statement = script.body[0]
    assert isinstance(statement, ast.If)
    assert len(statement.branches) == 2
    condition = statement.branches[0].condition
    assert isinstance(condition, ast.Call)
    assert condition.args == ()
    assert statement.else_body is not None


def test_loops_and_assignments() -> None:
    script = parse_dedent(
        """
        let items = [1, 2, 3]
        items[0] = 5
        let total = 0
        for item in items {
            if item == 2 { continue }
            total = total + item
        }
        while total > 0 { break }
        import math
        """
    )

    let, index_assign, _, loop, while_loop, import_stmt = script.body
    assert isinstance(let, ast.Let)
    assert isinstance(let.value, ast.ArrayLiteral)
    assert isinstance(index_assign, ast.IndexAssign)
    assert isinstance(loop, ast.ForIn)
    assert loop.name == "item"
    assert isinstance(loop.body[1], ast.Assign)
    assert isinstance(while_loop, ast.While)
    assert isinstance(while_loop.body[0], ast.Break)
    assert isinstance(import_stmt, ast.Import)
    assert import_stmt.module == "math"


def test_block_can_be_stored_in_a_variable() -> None:
    script = parse("let f = { println(it) }\ncall(f, 1)")

    let = script.body[0]
    assert isinstance(let.value, ast.Block)


def test_return_without_value() -> None:
    script = parse("fn noop() { return }")

    assert script.functions["noop"].body[0].value is None


def test_script_keeps_source() -> None:
    source = 'println("x")'

    assert parse(source).source == source


@pytest.mark.parametrize(
    ("source", "error", "message"),
    [
        ('step("a"', UnexpectedToken, "unexpected token end of file"),
        ("let = 1", UnexpectedToken, 'unexpected token "="'),
        ("else { }", UnusedKeyword, 'keyword "else"'),
        ("let x = in", UnusedKeyword, 'keyword "in"'),
        ("1 + 2 = 3", ParseError, "invalid assignment target"),
        ("for x items { }", UnexpectedToken, '"in"'),
    ],
)
def test_parse_errors(source: str, error: type[ParseError], message: str) -> None:
    with pytest.raises(error) as excinfo:
        parse(source)

    assert message in str(excinfo.value)


def test_error_position_points_at_token() -> None:
    with pytest.raises(UnexpectedToken) as excinfo:
        parse('pipeline("dev") {\n  step("go"))\n}')

    position = excinfo.value.position
    assert position.line == 2
    assert position.column == 13
