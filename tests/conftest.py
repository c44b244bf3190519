"""Pytest configuration for worky tests."""
import sys
from pathlib import Path

import pytest

# Add project root to path so 'worky' can be imported without installing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from worky.store.workspace import Workspace  # noqa: E402


@pytest.fixture
def workspace(tmp_path):
    """A freshly initialized workspace under a temp directory."""
    return Workspace.init(tmp_path)
