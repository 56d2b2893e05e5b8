from __future__ import annotations

import io
import textwrap
from typing import Any

import pytest

from pipescript.errors import ExpectedType, UndefinedOperation, UnexpectedType
from pipescript.interpreter import Interpreter, MemorySink, Runtime
from pipescript.script import parse


def run(source: str, stdin: str = "") -> tuple[Any, MemorySink]:
    sink = MemorySink()
    interpreter = Interpreter(Runtime(sink=sink, input_stream=io.StringIO(stdin)))
    value = interpreter.execute(parse(textwrap.dedent(source)))
    interpreter.runtime.flush()
    return value, sink


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ('len("hello")', 5),
        ("len([1, 2, 3])", 3),
        ('type("x")', "string"),
        ("type(1)", "int"),
        ("type(1.5)", "float"),
        ("type(false)", "bool"),
        ("type([])", "array"),
        ("type({ })", "fn"),
        ("type(println)", "fn"),
        ('str(1, "-", true)', "1-true"),
    ],
)
def test_simple_functions(source: str, expected: Any) -> None:
    value, _ = run(source)

    assert value == expected


def test_clone_copies_nested_lists() -> None:
    value, _ = run(
        """
        let original = [[1], 2]
        let cloned = clone(original)
        append(cloned[0], 5)
        [original, cloned]
        """
    )

    assert value == [[[1], 2], [[1, 5], 2]]


def test_append_and_remove() -> None:
    value, _ = run(
        """
        let items = [1]
        append(items, 2, 3)
        let removed = remove(items, 0)
        [items, removed]
        """
    )

    assert value == [[2, 3], 1]


def test_remove_out_of_range() -> None:
    with pytest.raises(UndefinedOperation):
        run("remove([1], 3)")


def test_len_rejects_numbers() -> None:
    with pytest.raises(UnexpectedType) as excinfo:
        run("len(5)")

    assert excinfo.value.actual == "int"


def test_append_requires_array() -> None:
    with pytest.raises(ExpectedType):
        run('append("text", 1)')


def test_call_accepts_script_functions() -> None:
    value, _ = run(
        """
        fn add(a, b) { return a + b }
        call(add, 2, 3)
        """
    )

    assert value == 5


def test_read_functions_consume_stdin() -> None:
    value, sink = run(
        """
        let name = readLine("name? ")
        let age = readInt()
        let ratio = readFloat()
        let word = readString()
        [name, age, ratio, word, readLine()]
        """,
        stdin="Ada Lovelace\n36 0.5\nfirst second\n",
    )

    assert value == ["Ada Lovelace", 36, 0.5, "first", None]
    assert sink.text == "name? \n"


def test_read_int_rejects_words() -> None:
    with pytest.raises(ExpectedType):
        run("readInt()", stdin="abc\n")
