"""
Unified configuration.

Each layer owns an XConfig dataclass with defaults; TapestryConfig
composes them. Environment overrides are read by `EnvSettings`, a
pydantic-settings model over TAPESTRY_* variables, and only through
`TapestryConfig.from_env`.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, Mapping, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .contracts.base import Error, ErrorCode, PolicyConfigError
from .core.sentinel import SentinelConfig
from .core.valkyrie import PolicyConfig, validate_policy
from .observability import ObservabilityConfig
from .query.mnemosyne import MnemosyneConfig
from .storage import StorageConfig
from .temporal.ledger import LedgerConfig


ENV_PREFIX = "TAPESTRY_"


class EnvSettings(BaseSettings):
    """
    Raw TAPESTRY_* overrides. Unset fields keep the layer defaults.

    The policy threshold stays a string here so that a bad value is
    reported as a PolicyConfigError rather than a validation error.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
    )

    storage_path: Optional[str] = None
    storage_backend: Optional[Literal["memory", "file"]] = None
    window_ms: Optional[int] = None
    surge_threshold: Optional[int] = None
    congestion_ratio: Optional[float] = None
    policy_threshold: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, env: Mapping[str, str]) -> EnvSettings:
        """Validate an explicit mapping without reading the process environment."""
        values = {
            key[len(ENV_PREFIX):].lower(): value.strip()
            for key, value in env.items()
            if key.startswith(ENV_PREFIX) and value.strip()
        }
        return cls.model_validate(values)


@dataclass
class TapestryConfig:
    """Unified configuration for the whole engine."""
    ledger: LedgerConfig = None
    storage: StorageConfig = None
    sentinel: SentinelConfig = None
    mnemosyne: MnemosyneConfig = None
    policy: PolicyConfig = None
    observability: ObservabilityConfig = None

    def __post_init__(self):
        self.ledger = self.ledger or LedgerConfig()
        self.storage = self.storage or StorageConfig()
        self.sentinel = self.sentinel or SentinelConfig()
        self.mnemosyne = self.mnemosyne or MnemosyneConfig()
        self.policy = self.policy or PolicyConfig()
        self.observability = self.observability or ObservabilityConfig()

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> TapestryConfig:
        """
        Build a configuration from TAPESTRY_* environment variables.

        Raises PolicyConfigError for an invalid policy threshold and
        ValueError (pydantic's ValidationError included) for any other
        invalid value.
        """
        settings = EnvSettings() if env is None else EnvSettings.from_mapping(env)
        return cls.from_settings(settings)

    @classmethod
    def from_settings(cls, settings: EnvSettings) -> TapestryConfig:
        backend_type = settings.storage_backend or ("file" if settings.storage_path else "memory")

        defaults = SentinelConfig()
        sentinel = SentinelConfig(
            window_ms=defaults.window_ms if settings.window_ms is None else settings.window_ms,
            surge_threshold=(
                defaults.surge_threshold if settings.surge_threshold is None else settings.surge_threshold
            ),
            congestion_ratio=(
                defaults.congestion_ratio if settings.congestion_ratio is None else settings.congestion_ratio
            ),
        )

        policy = PolicyConfig()
        if settings.policy_threshold is not None:
            try:
                policy.threshold = int(settings.policy_threshold)
            except ValueError as e:
                raise PolicyConfigError(
                    f"{ENV_PREFIX}POLICY_THRESHOLD must be an integer, got {settings.policy_threshold!r}",
                    Error.create(
                        ErrorCode.INVALID_POLICY, "invalid threshold", threshold=settings.policy_threshold
                    )
                ) from e
            validate_policy(policy)

        return cls(
            storage=StorageConfig(backend_type=backend_type, storage_path=settings.storage_path),
            sentinel=sentinel,
            policy=policy,
            observability=ObservabilityConfig(log_level=settings.log_level),
        )
