"""Tests for line -> declaration mapping."""

import pytest

from aipilot_cli.blocks import Direction, build_code_block, find_declaration
from aipilot_cli.models import BlockKind
from aipilot_cli.parser import get_source_unit


@pytest.fixture
def unit(write_file, sample_ts_source):
    return get_source_unit(write_file("src/sample.ts", sample_ts_source))


@pytest.mark.parametrize(
    "line, kind, name",
    [
        (3, BlockKind.FUNCTION, "add"),
        (4, BlockKind.FUNCTION, "add"),
        (9, BlockKind.CLASS, "Calculator"),
        (11, BlockKind.METHOD, "Calculator.reset"),
        (12, BlockKind.METHOD, "Calculator.reset"),
        (16, BlockKind.FUNCTION, "double"),
        (19, BlockKind.INTERFACE, "Shape"),
    ],
)
def test_enclosing_declaration(unit, line, kind, name):
    """Test the innermost declaration around a line."""
    decl = find_declaration(unit, line, Direction.ENCLOSING)
    assert decl is not None
    assert (decl.kind, decl.name) == (kind, name)


@pytest.mark.parametrize("line", [1, 2, 7, 999])
def test_no_enclosing_declaration(unit, line):
    """Test that imports, blank lines and out-of-range lines map to nothing."""
    assert find_declaration(unit, line, Direction.ENCLOSING) is None


@pytest.mark.parametrize(
    "line, name",
    [
        (1, "add"),
        (2, "add"),
        (7, "Calculator"),
        (10, "Calculator.reset"),
        (17, "Shape"),
    ],
)
def test_following_declaration(unit, line, name):
    """Test the nearest declaration starting after a line."""
    decl = find_declaration(unit, line, Direction.FOLLOWING)
    assert decl is not None
    assert decl.name == name


def test_nothing_follows_last_line(unit):
    """Test that no declaration follows the end of the file."""
    assert find_declaration(unit, 20, Direction.FOLLOWING) is None


def test_code_block_for_function(unit):
    """Test line range, signature and text of a function block."""
    decl = find_declaration(unit, 4, Direction.ENCLOSING)
    block = build_code_block(unit, decl, [4])

    assert (block.start_line, block.end_line) == (3, 6)
    assert block.signature == "function add(a: number, b: number): number"
    assert block.full_text.startswith("function add(")
    assert block.changed_lines == [4]
    assert block.key == (BlockKind.FUNCTION, "add", 3)


def test_code_block_for_method_and_arrow(unit):
    """Test method and arrow-function signatures."""
    method = build_code_block(unit, find_declaration(unit, 12, Direction.ENCLOSING))
    arrow = build_code_block(unit, find_declaration(unit, 16, Direction.ENCLOSING))
    cls = build_code_block(unit, find_declaration(unit, 9, Direction.ENCLOSING))

    assert method.signature == "async reset(): Promise<void>"
    assert (method.start_line, method.end_line) == (11, 13)
    assert arrow.signature == "const double = (n: number) => {...}"
    assert arrow.full_text == "export const double = (n: number) => n * 2;"
    assert cls.signature == "class Calculator"
    assert (cls.start_line, cls.end_line) == (8, 14)


def test_component_detection_is_structural(write_file):
    """Test that JSX in a comment or string does not make a component."""
    path = write_file("src/Title.tsx", (
        "export function Title() {\n"
        "  // return <b>not markup</b>\n"
        "  return (\n"
        "    <h1>Hello</h1>\n"
        "  );\n"
        "}\n"
        "\n"
        "export function label() {\n"
        "  return '<span/>';\n"
        "}\n"
    ))
    unit = get_source_unit(path)

    assert find_declaration(unit, 4, Direction.ENCLOSING).kind == BlockKind.COMPONENT
    assert find_declaration(unit, 9, Direction.ENCLOSING).kind == BlockKind.FUNCTION


def test_inner_arrow_callback_maps_to_outer_function(write_file):
    """Test that an anonymous callback is skipped in favor of its owner."""
    path = write_file("src/list.ts", (
        "export function total(items: number[]) {\n"
        "  return items.map((x) => {\n"
        "    return x * 2;\n"
        "  });\n"
        "}\n"
    ))
    unit = get_source_unit(path)

    assert find_declaration(unit, 3, Direction.ENCLOSING).name == "total"
