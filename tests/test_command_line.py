from __future__ import annotations

from pathlib import Path

import pytest

from procexec.command.command_line import CommandLine
from procexec.core.errors import InvalidArgument, InvalidCommandLine


def test_executable_only() -> None:
    cmdl = CommandLine("test")
    assert str(cmdl) == "test"
    assert cmdl.to_token_vector() == ["test"]
    assert cmdl.executable == "test"
    assert cmdl.arguments == ()


@pytest.mark.parametrize("executable", [None, "", "   "])
def test_blank_executable_is_rejected(executable: str | None) -> None:
    with pytest.raises(InvalidCommandLine):
        CommandLine(executable)


def test_path_executable_is_stringified(tmp_path: Path) -> None:
    script = tmp_path / "run.sh"
    assert CommandLine(script).executable == str(script)


def test_add_argument() -> None:
    cmdl = CommandLine("test")
    cmdl.add_argument("foo")
    cmdl.add_argument("bar")
    assert cmdl.to_display_string() == "test foo bar"
    assert cmdl.to_token_vector() == ["test", "foo", "bar"]


def test_add_none_argument_is_ignored() -> None:
    cmdl = CommandLine("test").add_argument(None)
    assert cmdl.to_token_vector() == ["test"]


def test_add_argument_with_space() -> None:
    cmdl = CommandLine("test").add_argument("foo").add_argument("ba r")
    assert str(cmdl) == 'test foo "ba r"'
    assert cmdl.to_token_vector() == ["test", "foo", '"ba r"']


def test_add_argument_with_quote() -> None:
    cmdl = CommandLine("test").add_argument("foo").add_argument('ba"r')
    assert str(cmdl) == "test foo 'ba\"r'"
    assert cmdl.to_token_vector() == ["test", "foo", "'ba\"r'"]


def test_add_argument_with_quotes_around() -> None:
    cmdl = CommandLine("test")
    cmdl.add_argument("'foo'").add_argument('"bar"').add_argument('"fe z"')
    assert str(cmdl) == 'test foo bar "fe z"'
    assert cmdl.to_token_vector() == ["test", "foo", "bar", '"fe z"']


def test_add_argument_with_single_quote() -> None:
    cmdl = CommandLine("test").add_argument("foo").add_argument("ba'r")
    assert cmdl.to_token_vector() == ["test", "foo", '"ba\'r"']


def test_add_argument_with_both_quotes_is_rejected() -> None:
    cmdl = CommandLine("test")
    with pytest.raises(InvalidArgument):
        cmdl.add_argument("b\"a'r")
    assert cmdl.to_token_vector() == ["test"]


def test_add_argument_without_quote_handling() -> None:
    cmdl = CommandLine("test").add_argument("b\"a'r", handle_quoting=False)
    assert cmdl.to_token_vector() == ["test", "b\"a'r"]
    assert cmdl.to_argv() == ["test", "b\"a'r"]


def test_add_arguments_from_string() -> None:
    assert CommandLine("test").add_arguments("foo bar").to_token_vector() == [
        "test",
        "foo",
        "bar",
    ]
    assert CommandLine("test").add_arguments("'foo' \"bar\"").to_token_vector() == [
        "test",
        "foo",
        "bar",
    ]
    cmdl = CommandLine("test").add_arguments("'fo o' \"ba r\"")
    assert str(cmdl) == 'test "fo o" "ba r"'


def test_add_arguments_from_sequence_and_none() -> None:
    cmdl = CommandLine("test").add_arguments(["foo", "ba r"]).add_arguments(None)
    assert cmdl.to_token_vector() == ["test", "foo", '"ba r"']


def test_duplicate_arguments_keep_insertion_order() -> None:
    cmdl = CommandLine("test").add_arguments(["-v", "x", "-v"])
    assert cmdl.arguments == ("-v", "x", "-v")


def test_parse() -> None:
    cmdl = CommandLine.parse("test foo bar")
    assert str(cmdl) == "test foo bar"
    assert cmdl.to_token_vector() == ["test", "foo", "bar"]


def test_parse_with_quotes() -> None:
    cmdl = CommandLine.parse("test \"foo\" 'ba r'")
    assert str(cmdl) == 'test foo "ba r"'
    assert cmdl.to_token_vector() == ["test", "foo", '"ba r"']


@pytest.mark.parametrize("line", ['test "foo bar', None, "  ", ""])
def test_parse_rejects_invalid_input(line: str | None) -> None:
    with pytest.raises(InvalidCommandLine):
        CommandLine.parse(line)


def test_resolve_substitutes_whole_token_placeholders(tmp_path: Path) -> None:
    document = tmp_path / "my doc.pdf"
    cmdl = CommandLine("acrord32").add_arguments(["/p", "/h", "${file}", "${missing}"])
    cmdl.set_substitution_map({"file": document})

    assert cmdl.to_token_vector() == ["acrord32", "/p", "/h", "${file}", "${missing}"]
    assert cmdl.resolve() == ["acrord32", "/p", "/h", str(document), "${missing}"]
    assert cmdl.to_argv() == ["acrord32", "/p", "/h", str(document), "${missing}"]


def test_resolve_with_explicit_map_overrides_stored_map() -> None:
    cmdl = CommandLine("${tool}", substitution_map={"tool": "gcc", "level": 1})
    cmdl.add_argument("-O${level}").add_argument("${level}")
    assert cmdl.resolve() == ["gcc", "-O${level}", "1"]
    assert cmdl.resolve({"tool": "clang"}) == ["clang", "-O${level}", "${level}"]


def test_none_substitution_value_counts_as_unbound() -> None:
    cmdl = CommandLine("test", substitution_map={"x": None}).add_argument("${x}")
    assert cmdl.resolve() == ["test", "${x}"]


def test_substitution_map_is_copied() -> None:
    mapping = {"x": "1"}
    cmdl = CommandLine("test", substitution_map=mapping).add_argument("${x}")
    mapping["x"] = "2"
    assert cmdl.resolve() == ["test", "1"]


def test_to_argv_removes_normalization_quotes() -> None:
    cmdl = CommandLine("test").add_arguments(["ba r", 'ba"r', "plain"])
    assert cmdl.to_argv() == ["test", "ba r", 'ba"r', "plain"]


@pytest.mark.parametrize("executable", ["/opt/my tools/run", "/opt/it's/run", '/opt/say"hi"/run'])
@pytest.mark.parametrize(
    "arguments",
    [
        ["foo", "bar"],
        ["ba r", "x"],
        ['ba"r', "it's"],
        ["'quoted'", '"fe z"'],
        ["", "after-empty"],
    ],
)
def test_display_string_parses_back_to_same_tokens(executable: str, arguments: list[str]) -> None:
    cmdl = CommandLine(executable).add_arguments(arguments)
    reparsed = CommandLine.parse(cmdl.to_display_string())
    assert reparsed.resolve() == cmdl.resolve()


def test_display_string_quotes_executable_with_quote_character() -> None:
    cmdl = CommandLine("/opt/it's/run").add_argument("x")
    assert cmdl.to_display_string() == "\"/opt/it's/run\" x"
    assert CommandLine.parse(cmdl.to_display_string()).executable == "/opt/it's/run"
