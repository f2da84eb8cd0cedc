from __future__ import annotations

import pytest

from code_review_backend.services.config_manager import CONFIG_DIR_ENV, ConfigManager
from fakes import commit_file, init_repo


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """Repository on `main` with one commit holding a.txt and b.txt"""
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    path = init_repo(tmp_path / "repo")
    (path / "a.txt").write_text("alpha\n", encoding="utf-8")
    commit_file(path, "b.txt", "beta\n", message="Initial commit")
    return path


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    directory = tmp_path / "config"
    monkeypatch.setenv(CONFIG_DIR_ENV, str(directory))
    ConfigManager.reset_instance()
    yield directory
    ConfigManager.reset_instance()
