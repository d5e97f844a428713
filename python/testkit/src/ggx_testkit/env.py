"""
Environment Configuration

Loads and validates testkit settings from environment variables and .env files.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ggx_testkit.config import NetworkConfig, NetworkProfile
from ggx_testkit.exceptions import UnsupportedNetworkError
from ggx_testkit.types import ImageRef, NetworkMode


@dataclass
class EnvConfig:
    """Environment configuration for testkit runs"""

    network: str = NetworkConfig.DEFAULT_NETWORK

    # Image overrides for the GGX node
    ggx_image: Optional[str] = None
    ggx_tag: Optional[str] = None

    network_mode: str = NetworkMode.HOST.value

    # Timing (seconds)
    readiness_interval: float = 0.5
    poll_interval: float = 1.0
    finalization_timeout: float = 120.0
    event_timeout: float = 60.0

    log_level: str = "INFO"

    # Docker-backed scenarios only run when explicitly enabled
    e2e_enabled: bool = False

    @property
    def mode(self) -> NetworkMode:
        return NetworkMode(self.network_mode)

    def profile(self) -> NetworkProfile:
        """Network profile with any image overrides applied"""
        profile = NetworkConfig.get_profile(self.network)
        if not (self.ggx_image or self.ggx_tag):
            return profile
        node = ImageRef(
            repository=self.ggx_image or profile.ggx_node.repository,
            tag=self.ggx_tag or profile.ggx_node.tag,
        )
        return profile.model_copy(update={"ggx_node": node})


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _bool_env(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def load_env_config(env_paths: Optional[list[Path]] = None) -> EnvConfig:
    """
    Load environment configuration from .env files.

    Args:
        env_paths: List of .env file paths to load (in order)

    Returns:
        EnvConfig with loaded values
    """
    if env_paths is None:
        env_paths = [Path.cwd() / ".env"]

    for path in env_paths:
        if path.exists():
            load_dotenv(path)

    return EnvConfig(
        network=os.getenv("GGX_NETWORK", NetworkConfig.DEFAULT_NETWORK),
        ggx_image=os.getenv("GGX_NODE_IMAGE") or None,
        ggx_tag=os.getenv("GGX_NODE_TAG") or None,
        network_mode=os.getenv("GGX_NETWORK_MODE", NetworkMode.HOST.value),
        readiness_interval=_float_env("GGX_READINESS_INTERVAL", 0.5),
        poll_interval=_float_env("GGX_POLL_INTERVAL", 1.0),
        finalization_timeout=_float_env("GGX_FINALIZATION_TIMEOUT", 120.0),
        event_timeout=_float_env("GGX_EVENT_TIMEOUT", 60.0),
        log_level=os.getenv("GGX_LOG_LEVEL", "INFO"),
        e2e_enabled=_bool_env("GGX_E2E"),
    )


def validate_env_config(config: EnvConfig) -> tuple[bool, list[str]]:
    """
    Validate environment configuration.

    Args:
        config: Environment configuration

    Returns:
        Tuple of (is_valid, list of missing/invalid items)
    """
    issues = []

    if config.network.lower() not in NetworkConfig.supported_networks():
        issues.append(
            f"GGX_NETWORK '{config.network}' is not one of "
            f"{', '.join(NetworkConfig.supported_networks())}"
        )

    if config.network_mode not in [m.value for m in NetworkMode]:
        issues.append(f"GGX_NETWORK_MODE should be 'host' or 'isolated', got '{config.network_mode}'")

    for name in ("readiness_interval", "poll_interval"):
        if getattr(config, name) <= 0:
            issues.append(f"{name} must be positive")

    for name in ("finalization_timeout", "event_timeout"):
        if getattr(config, name) < 0:
            issues.append(f"{name} must not be negative")

    return len(issues) == 0, issues


def print_env_status(config: EnvConfig):
    """Print environment configuration status"""
    print("\n" + "=" * 60)
    print("ggx-testkit Environment Configuration")
    print("=" * 60)

    print(f"\nNetwork: {config.network}")
    try:
        profile = config.profile()
        print(f"  GGX node: {profile.ggx_node}")
        print(f"  interBTC clients: {profile.interbtc_clients}")
    except UnsupportedNetworkError as e:
        print(f"  ✗ {e}")

    print(f"\nNetwork mode: {config.network_mode}")
    print(f"Readiness interval: {config.readiness_interval}s")
    print(f"Poll interval: {config.poll_interval}s")
    print(f"Finalization timeout: {config.finalization_timeout}s")
    print(f"Event timeout: {config.event_timeout}s")
    print(f"\nE2E scenarios: {'✓ Enabled' if config.e2e_enabled else '✗ Disabled (set GGX_E2E=1)'}")

    print("=" * 60 + "\n")
