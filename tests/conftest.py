"""
Pytest configuration and fixtures.
"""

import pytest

from proposal_engine.models import (
    AgentConfig,
    AutoSaveConfig,
    ContextConfig,
    GenerationConfig,
    Reviewer,
    ReuseConfig,
    SettingsConfig,
)


@pytest.fixture
def db_path(tmp_path) -> str:
    """Fresh SQLite file per test."""
    return str(tmp_path / "proposals.db")


@pytest.fixture
def settings() -> SettingsConfig:
    """Settings with the bundled agent names and small, test-friendly caps."""
    return SettingsConfig(
        agents={
            "writer": AgentConfig(model="google-gla:gemini-2.5-flash", temperature=0.4),
            "ranker": AgentConfig(model="google-gla:gemini-2.5-flash-lite", temperature=0.1),
        },
        autosave=AutoSaveConfig(interval_seconds=0.05, author="autosave"),
        context=ContextConfig(),
        generation=GenerationConfig(),
        reuse=ReuseConfig(),
    )


@pytest.fixture
def reviewers():
    """Team members on a proposal; one of them is not allowed to review."""
    return [
        Reviewer(email="writer@example.com", name="Writer"),
        Reviewer(email="lead@example.com", name="Capture Lead"),
        Reviewer(email="pm@example.com", name="Program Manager"),
        Reviewer(email="intern@example.com", name="Intern", can_review=False),
    ]
