"""Wires a SwapOrchestrator from configuration."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from swapper.config import SwapperConfig, load_signer_resolver
from swapper.db.ledger import SwapLedger
from swapper.errors import ConfigError
from swapper.notify import DiscordChannel, Notifier, TelegramChannel
from swapper.orchestrator import SwapOrchestrator
from swapper.pricing import CoinGeckoSource, CoinPaprikaSource, PriceOracle
from swapper.routing import LcdBalanceReader, PaperVenue, SkipClient

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """An orchestrator together with the resources it owns."""

    orchestrator: SwapOrchestrator
    notifier: Notifier
    closeables: list = field(default_factory=list)

    async def close(self) -> None:
        for resource in self.closeables:
            await resource.close()


def build_notifier(config: SwapperConfig) -> Notifier:
    settings = config.notification
    channels = []
    if settings.discord_webhook_url:
        channels.append(DiscordChannel(settings.discord_webhook_url))
    if settings.telegram_bot_token and settings.telegram_chat_id:
        channels.append(TelegramChannel(settings.telegram_bot_token, settings.telegram_chat_id))
    return Notifier(channels)


def build_runtime(config: SwapperConfig, dry_run: Optional[bool] = None) -> Runtime:
    """Build the orchestrator and its collaborators.

    In dry-run mode execution is simulated by the paper venue. Without a
    source address the paper venue also supplies the balance and quotes,
    so the whole cycle runs offline apart from price lookups.

    Raises:
        ConfigError: If live mode is missing an address or a signer.
    """
    pair = config.to_pair()
    policy = config.to_policy()
    dry_run = config.swap.dry_run if dry_run is None else dry_run

    gecko = CoinGeckoSource(api_key=config.price.coingecko_api_key or None)
    paprika = CoinPaprikaSource() if config.price.use_fallback else None
    oracle = PriceOracle(gecko, paprika, cache_ttl=config.price.cache_duration_minutes * 60)

    ledger = SwapLedger(config.storage.db_path, export_dir=config.storage.export_dir)
    notifier = build_notifier(config)
    closeables: list = [oracle, notifier]

    wallet = config.wallet
    dest_reader = None
    if wallet.dest_address:
        dest_reader = LcdBalanceReader(wallet.dest_lcd_url)
        closeables.append(dest_reader)

    skip = SkipClient(
        api_key=config.routing.skip_api_key or None,
        base_url=config.routing.base_url,
        poll_interval=config.routing.poll_interval_seconds,
        request_timeout=config.routing.request_timeout_seconds,
    )

    signer_resolver = None
    if dry_run:
        logger.warning("DRY RUN MODE ENABLED - No real transactions will be executed")
        paper = PaperVenue(
            balance=int(config.swap.paper_balance * 10 ** pair.source_decimals),
            rate=config.swap.paper_rate,
            source_decimals=pair.source_decimals,
            dest_decimals=pair.dest_decimals,
        )
        driver = paper
        if wallet.source_address:
            balance_reader = LcdBalanceReader(wallet.source_lcd_url)
            closeables.append(balance_reader)
            route_provider = skip
            closeables.append(skip)
        else:
            balance_reader = paper
            route_provider = paper
        account_ref = wallet.source_address or "paper"
    else:
        if not wallet.source_address:
            raise ConfigError("wallet.source_address is required in live mode")
        if not wallet.signer:
            raise ConfigError("wallet.signer is required in live mode")
        signer_resolver = load_signer_resolver(wallet.signer)
        balance_reader = LcdBalanceReader(wallet.source_lcd_url)
        closeables.extend([balance_reader, skip])
        route_provider = skip
        driver = skip
        account_ref = wallet.source_address

    orchestrator = SwapOrchestrator(
        pair=pair,
        policy=policy,
        account_ref=account_ref,
        balance_reader=balance_reader,
        price_oracle=oracle,
        route_provider=route_provider,
        execution_driver=driver,
        ledger=ledger,
        notifier=notifier,
        signer_resolver=signer_resolver,
        dry_run=dry_run,
        dest_account_ref=wallet.dest_address or None,
        dest_balance_reader=dest_reader,
    )
    return Runtime(orchestrator=orchestrator, notifier=notifier, closeables=closeables)
