"""py.test configuration."""
import pytest


def pytest_addoption(parser):
    parser.addoption("--deep-n", action="store", type=int, default=50000,
                     help="input size for the stack-depth tests (should overflow a recursive implementation)")


@pytest.fixture(scope="session")
def deep_n(request) -> int:
    return request.config.getoption("--deep-n")
