import pytest

from reactloop.instructions import (
    SYSTEM_PROMPT_TEMPLATE,
    InstructionLoader,
    build_system_prompt,
    truncate_context,
)


def test_packaged_template_renders_tools_and_literal_json(tmp_path):
    loader = InstructionLoader(personal_dir=tmp_path / "none")

    prompt = build_system_prompt(loader, "show_status: Display a status message. Parameters: ")

    assert "show_status: Display a status message." in prompt
    assert 'Action Input: {"location": "San Francisco, CA"}' in prompt
    assert "CURRENT PAGE CONTENT" not in prompt
    assert "{page_context}" not in prompt


def test_personal_override_wins(tmp_path):
    personal = tmp_path / "personal"
    personal.mkdir()
    (personal / SYSTEM_PROMPT_TEMPLATE).write_text("Tools:\n{tools}\n{page_context}{unknown}")
    loader = InstructionLoader(personal_dir=personal)

    prompt = build_system_prompt(loader, "a: b. Parameters: ", "Some page")

    assert prompt == "Tools:\na: b. Parameters: \n\nCURRENT PAGE CONTENT:\nSome page\n{unknown}"


def test_missing_template_raises(tmp_path):
    loader = InstructionLoader(base_dir=tmp_path, personal_dir=tmp_path / "none")

    with pytest.raises(FileNotFoundError):
        loader.load("missing.md")


def test_truncate_context():
    assert truncate_context("  short  ", 10) == "short"
    assert truncate_context("abcdefghij", 4) == "abcd..."
    assert truncate_context("", 4) == ""
