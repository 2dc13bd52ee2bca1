"""Shared fixtures for converter unit tests"""

import pytest

from gardenexport.config import ExportBackupSettings


HELLO_TREE = {
    "type": "doc",
    "content": [
        {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Hello"}]},
        {"type": "paragraph", "content": [{"type": "text", "text": "World", "marks": [{"type": "bold"}]}]},
    ],
}


@pytest.fixture(name="hello_tree")
def hello_tree_fixture():
    return HELLO_TREE


@pytest.fixture(name="settings")
def settings_fixture():
    return ExportBackupSettings()
