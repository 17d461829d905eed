"""
Unit tests for settings validation
"""
import pytest
from pydantic import ValidationError

from crewmate.config import Environment, Settings


def test_single_worker_only():
    assert Settings().workers == 1
    with pytest.raises(ValidationError):
        Settings(workers=2)


def test_workers_from_environment_is_validated(monkeypatch):
    monkeypatch.setenv("WORKERS", "4")
    with pytest.raises(ValidationError):
        Settings()


def test_environment_is_case_insensitive():
    assert Settings(environment="Production").environment == Environment.PRODUCTION
