import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from murmuration.sim.core.rng import DeterministicRng  # noqa: E402


class FixedCoinRng(DeterministicRng):
    """Seeded RNG whose identity-or-half-turn coin always lands the same way."""

    def __init__(self, identity: bool, seed: int = 0):
        super().__init__(seed)
        self._identity = identity

    def next_bool(self) -> bool:
        return self._identity


@pytest.fixture
def coin_rng():
    return FixedCoinRng


@pytest.fixture
def identity_coin() -> FixedCoinRng:
    return FixedCoinRng(identity=True)


@pytest.fixture
def flip_coin() -> FixedCoinRng:
    return FixedCoinRng(identity=False)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="run tests that are intended only for configuration changes",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: marks tests that should only run when configuration files change",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(
        reason="Run only when configuration is modified (use --run-config-tests)",
    )

    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)
