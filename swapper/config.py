"""Configuration for Swapper.

Settings live in ``~/.config/swapper/config.toml``. Secrets and a few
operational knobs can be overridden from the environment; a variable that
is set wins over the file.
"""

import importlib
import logging
import os
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field, ValidationError

from swapper.errors import ConfigError
from swapper.models import SwapPair, TradePolicy
from swapper.routing.base import SignerResolver

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "swapper"
CONFIG_PATH = CONFIG_DIR / "config.toml"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "SKIP_API_KEY": ("routing", "skip_api_key"),
    "COINGECKO_API_KEY": ("price", "coingecko_api_key"),
    "DISCORD_WEBHOOK_URL": ("notification", "discord_webhook_url"),
    "TELEGRAM_BOT_TOKEN": ("notification", "telegram_bot_token"),
    "TELEGRAM_CHAT_ID": ("notification", "telegram_chat_id"),
    "DRY_RUN": ("swap", "dry_run"),
    "LOG_LEVEL": ("logging", "level"),
}

TRUTHY = {"1", "true", "yes", "on"}


class RoutingConfig(BaseModel):
    skip_api_key: str = Field(default="", description="Skip Go API key; empty uses the free tier")
    base_url: str = Field(default="https://api.skip.build")
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)


class WalletConfig(BaseModel):
    source_address: str = Field(default="", description="Address holding the source asset")
    dest_address: str = Field(default="", description="Address receiving the destination asset")
    source_lcd_url: str = Field(default="https://api-eu-1.kyve.network")
    dest_lcd_url: str = Field(default="https://noble-api.polkachu.com")
    signer: str = Field(
        default="", description="Import path 'module:callable' of the signer resolver"
    )


class PairConfig(BaseModel):
    source_denom: str = "ukyve"
    source_chain: str = "kyve-1"
    source_symbol: str = "kyve"
    source_decimals: int = Field(default=6, ge=0)
    dest_denom: str = "uusdc"
    dest_chain: str = "noble-1"
    dest_symbol: str = "usdc"
    dest_decimals: int = Field(default=6, ge=0)


class SwapConfig(BaseModel):
    min_swap_amount_usd: float = Field(default=10.0, ge=0)
    max_swap_amount_usd: float = Field(default=1000.0, ge=0)
    swap_percentage: float = Field(default=100.0, ge=0, le=100)
    keep_reserve: float = Field(default=0.0, ge=0, description="Whole source tokens left untouched")
    max_slippage_percent: float = Field(default=2.0, ge=0, le=100)
    min_effective_rate: float = Field(default=0.0001, gt=0)
    schedule: str = Field(default="0 */6 * * *", description="Cron expression")
    timeout_minutes: float = Field(default=30.0, gt=0)
    dry_run: bool = False
    paper_balance: float = Field(default=1000.0, ge=0, description="Dry-run balance in whole tokens")
    paper_rate: float = Field(default=0.01, gt=0, description="Dry-run dest-per-source rate")


class PriceConfig(BaseModel):
    coingecko_api_key: str = ""
    cache_duration_minutes: float = Field(default=5.0, ge=0)
    use_fallback: bool = True


class NotificationConfig(BaseModel):
    discord_webhook_url: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""


class LoggingConfig(BaseModel):
    level: str = "info"
    to_file: bool = True
    log_dir: Path = CONFIG_DIR / "logs"


class StorageConfig(BaseModel):
    db_path: Path = CONFIG_DIR / "swapper.db"
    export_dir: Path = CONFIG_DIR / "exports"


class SwapperConfig(BaseModel):
    """Validated Swapper configuration."""

    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    pair: PairConfig = Field(default_factory=PairConfig)
    swap: SwapConfig = Field(default_factory=SwapConfig)
    price: PriceConfig = Field(default_factory=PriceConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def to_policy(self) -> TradePolicy:
        """Trade policy in base units, basis points and seconds.

        Raises:
            ConfigError: If the swap settings are inconsistent.
        """
        swap = self.swap
        try:
            return TradePolicy(
                min_usd=swap.min_swap_amount_usd,
                max_usd=swap.max_swap_amount_usd,
                swap_percentage=swap.swap_percentage,
                keep_reserve=int(round(swap.keep_reserve * 10 ** self.pair.source_decimals)),
                max_slippage_bps=int(round(swap.max_slippage_percent * 100)),
                min_effective_rate=swap.min_effective_rate,
                execution_timeout=swap.timeout_minutes * 60,
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid swap settings: {e}") from e

    def to_pair(self) -> SwapPair:
        try:
            return SwapPair(**self.pair.model_dump())
        except ValidationError as e:
            raise ConfigError(f"Invalid swap pair: {e}") from e


def _apply_env(data: dict, environ) -> dict:
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        if key == "dry_run":
            value = value.strip().lower() in TRUTHY
        data.setdefault(section, {})[key] = value
    return data


def load_config(path: Optional[Path] = None, environ=None) -> SwapperConfig:
    """Load configuration from TOML and the environment.

    A missing file yields the defaults plus any environment overrides.

    Args:
        path: Config file. Defaults to ``~/.config/swapper/config.toml``.
        environ: Environment mapping. Defaults to ``os.environ``.

    Raises:
        ConfigError: If the file cannot be parsed or fails validation.
    """
    path = Path(path) if path else CONFIG_PATH
    environ = os.environ if environ is None else environ

    data: dict = {}
    if path.exists():
        try:
            data = toml.load(path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e
    else:
        logger.info("No config file at %s, using defaults", path)

    try:
        config = SwapperConfig.model_validate(_apply_env(data, environ))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    config.to_policy()
    return config


def create_template_config(path: Optional[Path] = None) -> Path:
    """Write a template configuration file and return its path."""
    path = Path(path) if path else CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    template = SwapperConfig().model_dump(mode="json")
    template["wallet"]["source_address"] = "kyve1..."
    template["wallet"]["dest_address"] = "noble1..."
    template["swap"]["dry_run"] = True

    with open(path, "w") as f:
        toml.dump(template, f)

    return path


def load_signer_resolver(import_path: str) -> SignerResolver:
    """Import the signer resolver named by ``module:callable``.

    Raises:
        ConfigError: If the path is malformed or does not name a callable.
    """
    module_name, sep, attr = import_path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Signer must look like 'module:callable', got {import_path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import signer module {module_name}: {e}") from e

    resolver = getattr(module, attr, None)
    if not callable(resolver):
        raise ConfigError(f"{import_path} is not callable")
    return resolver
