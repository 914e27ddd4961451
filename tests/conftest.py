import pytest

from fakes import FakeGitHub


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
