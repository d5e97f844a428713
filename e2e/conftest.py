"""
E2E Test Configuration with Real Container Management

This module provides:
- Environment configuration loading and validation
- Logging setup for scenario runs
- Per-scenario service orchestration (start/stop)
- Pytest fixtures for running against real Docker containers
"""

import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Add testkit src to path so scenarios run from a plain checkout
_e2e_dir = Path(__file__).parent
_project_root = _e2e_dir.parent
sys.path.insert(0, str(_project_root / "python" / "testkit" / "src"))

from ggx_testkit.env import (  # noqa: E402
    load_env_config,
    print_env_status,
    validate_env_config,
)
from ggx_testkit.lifecycle import LifecycleManager, ServiceOrchestrator  # noqa: E402
from ggx_testkit.logging_config import setup_logging  # noqa: E402
from ggx_testkit.runtime import DockerRuntime  # noqa: E402

# =============================================================================
# Environment Configuration
# =============================================================================

for env_path in [_e2e_dir / ".env", _project_root / ".env"]:
    if env_path.exists():
        load_dotenv(env_path)
        break

ENV_CONFIG = load_env_config()
ENV_VALID, ENV_ISSUES = validate_env_config(ENV_CONFIG)

# =============================================================================
# Skip Conditions
# =============================================================================

SKIP_E2E = not ENV_CONFIG.e2e_enabled or not ENV_VALID
SKIP_REASON = "E2E scenarios need Docker and GGX_E2E=1 (and a valid GGX_* configuration)"


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_configure(config):
    """Register custom markers and set up logging."""
    config.addinivalue_line("markers", "e2e: end-to-end scenarios running real containers")
    setup_logging(ENV_CONFIG.log_level)


def pytest_collection_modifyitems(config, items):
    """Print test discovery summary and environment status; skip when disabled."""
    e2e_items = [item for item in items if "e2e" in [m.name for m in item.iter_markers()]]

    if e2e_items:
        print_env_status(ENV_CONFIG)

        print(f"\n{'=' * 60}")
        print("GGX E2E Scenario Suite")
        print(f"{'=' * 60}")
        print(f"Network: {ENV_CONFIG.network} ({ENV_CONFIG.network_mode} networking)")
        print(f"Scenarios discovered: {len(e2e_items)}")

        if SKIP_E2E:
            print(f"\n⚠️  E2E scenarios will be skipped: {SKIP_REASON}")
        if ENV_ISSUES:
            print(f"\n⚠️  Environment issues: {ENV_ISSUES}")

        print(f"{'=' * 60}\n")

    if SKIP_E2E:
        skip = pytest.mark.skip(reason=SKIP_REASON)
        for item in e2e_items:
            item.add_marker(skip)


# =============================================================================
# Service Lifecycle Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def env_config():
    """Get environment configuration."""
    return ENV_CONFIG


@pytest.fixture(scope="session")
def network_profile(env_config):
    """Image pins for the configured network, with overrides applied."""
    return env_config.profile()


@pytest.fixture(scope="session")
def runtime():
    """Docker runtime shared by every scenario."""
    return DockerRuntime()


@pytest.fixture
def manager(runtime, env_config):
    return LifecycleManager(runtime, readiness_interval=env_config.readiness_interval)


@pytest.fixture
async def services(manager):
    """
    Service orchestrator for one scenario.

    Every container a scenario starts through it is stopped when the
    scenario ends, whether it passed or not.
    """
    orchestrator = ServiceOrchestrator(manager)
    yield orchestrator
    await orchestrator.stop_all()


@pytest.fixture
def facade_options(env_config):
    """ChainFacade timing taken from the environment."""
    return {
        "poll_interval": env_config.poll_interval,
        "finalization_timeout": env_config.finalization_timeout,
        "event_timeout": env_config.event_timeout,
    }


# =============================================================================
# Account Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def alice():
    from ggx_testkit.chain.substrate import dev_keypair

    return dev_keypair("alice")


@pytest.fixture(scope="session")
def bob():
    from ggx_testkit.chain.substrate import dev_keypair

    return dev_keypair("bob")
