"""
Pytest configuration and fixtures for psych_interpreter tests.
"""

import json
import sys
from pathlib import Path

import numpy as np
import polars as pl
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from psych_interpreter.analyses.fa.model_data import build_fa_analysis_data  # noqa: E402
from psych_interpreter.analyses.gm.model_data import build_gm_analysis_data  # noqa: E402
from psych_interpreter.core.config_loader import get_interpret_config  # noqa: E402


@pytest.fixture(scope="session")
def project_root():
    """Return project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    """Each test sees config as loaded from the current environment."""
    get_interpret_config.cache_clear()
    yield
    get_interpret_config.cache_clear()


class FakeChatSession:
    """
    In-memory ChatSession: returns a canned reply and records what was sent.

    fork() returns a new FakeChatSession sharing the canned reply; the forks
    are kept in ``forks`` so tests can inspect the request-scoped copy.
    """

    def __init__(self, reply="", token_counts=None, system_prompt=None, error=None):
        self.reply = reply
        self.token_counts = token_counts if token_counts is not None else {"user": 0, "assistant": 0}
        self.system_prompt = system_prompt
        self.error = error
        self.sent = []
        self.forks = []

    def send(self, prompt, echo="none"):
        if self.error is not None:
            raise self.error
        self.sent.append(prompt)
        return self.reply

    def get_token_counts(self):
        return dict(self.token_counts)

    def get_provider_name(self):
        return "fake"

    def get_model_name(self):
        return "fake-model"

    def fork(self):
        child = FakeChatSession(self.reply, self.token_counts, self.system_prompt, self.error)
        self.forks.append(child)
        return child


@pytest.fixture
def make_session():
    """Factory for FakeChatSession instances."""
    return FakeChatSession


@pytest.fixture
def fa_variable_info():
    return {
        "anx1": "I often feel nervous",
        "anx2": "I worry about many things",
        "anx3": "I feel tense in social situations",
        "dep1": "I feel sad most of the day",
        "dep2": "I have lost interest in hobbies",
        "dep3": "I feel hopeless about the future",
    }


@pytest.fixture
def fa_loadings():
    """
    Three factors: Factor1 anxiety, Factor2 depression (anx3 cross-loads),
    Factor3 without any loading >= .30 (emergency rule picks dep1, anx1).
    """
    return pl.DataFrame(
        {
            "variable": ["anx1", "anx2", "anx3", "dep1", "dep2", "dep3"],
            "Factor1": [0.72, 0.65, 0.58, 0.10, 0.05, 0.12],
            "Factor2": [0.08, 0.12, 0.35, 0.70, 0.66, 0.61],
            "Factor3": [0.21, 0.05, 0.10, 0.25, 0.02, 0.18],
        }
    )


@pytest.fixture
def fa_data(fa_loadings, fa_variable_info):
    return build_fa_analysis_data(fa_loadings, fa_variable_info)


@pytest.fixture
def valid_fa_reply():
    return json.dumps(
        {
            "Factor1": {"name": "Anxious Arousal", "interpretation": "Worry, nervousness and social tension."},
            "Factor2": {"name": "Depressed Mood", "interpretation": "Sadness, anhedonia and hopelessness."},
            "Factor3": {"name": "Residual Distress", "interpretation": "A weak blend of sadness and nerves."},
        }
    )


@pytest.fixture
def gm_variable_info():
    return {
        "openness": "Openness to experience",
        "conscientiousness": "Conscientiousness",
        "neuroticism": "Neuroticism",
    }


@pytest.fixture
def gm_fit_results():
    """Two well separated clusters on three standardized variables, 10 observations."""
    memberships = np.array(
        [
            [0.95, 0.05],
            [0.90, 0.10],
            [0.99, 0.01],
            [0.85, 0.15],
            [0.97, 0.03],
            [0.92, 0.08],
            [0.10, 0.90],
            [0.02, 0.98],
            [0.20, 0.80],
            [0.05, 0.95],
        ]
    )
    return {
        "means": np.array([[0.8, -1.2], [0.5, -0.7], [-0.9, 1.3]]),
        "covariances": np.stack([np.eye(3) * 0.5, np.eye(3) * 0.6]),
        "proportions": np.array([0.6, 0.4]),
        "memberships": memberships,
        "covariance_type": "VVV",
        "variable_names": ["openness", "conscientiousness", "neuroticism"],
        "bic": -1234.5,
    }


@pytest.fixture
def gm_data(gm_fit_results, gm_variable_info):
    return build_gm_analysis_data(gm_fit_results, gm_variable_info, min_cluster_size=2)


@pytest.fixture
def valid_gm_reply():
    return json.dumps(
        {
            "Cluster_1": {"name": "Stable Explorers", "interpretation": "Open, organized and emotionally calm."},
            "Cluster_2": {"name": "Anxious Traditionalists", "interpretation": "Reserved, less planful, more tense."},
        }
    )
