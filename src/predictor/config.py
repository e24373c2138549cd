"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class MarketDataSettings(BaseSettings):
    """Market data source settings (candles and live ticker)."""

    model_config = SettingsConfigDict(env_prefix="MARKET_")

    testnet: bool = False
    symbol: str = "ETH/BTC"
    interval: str = "1m"
    candle_limit: int = 100
    request_timeout_seconds: float = 10.0


class SessionSettings(BaseSettings):
    """Per-session control loop and launch parameters."""

    model_config = SettingsConfigDict(env_prefix="SESSION_")

    count: int = 300
    stagger_seconds: float = 10.0  # delay between session launches
    initial_balance: Decimal = Decimal("1000")
    resolution_interval_minutes: float = 2.0  # prediction horizon
    fetch_retry_interval_minutes: float = 2.0
    min_bet_percentage: Decimal = Decimal("0.03")
    max_bet_percentage: Decimal = Decimal("0.10")
    leverage: Decimal = Decimal("20")
    max_training_candles: int | None = None  # None = never prune
    restart_on_failure: bool = True
    restart_delay_seconds: float = 30.0


class ClassifierSettings(BaseSettings):
    """Gradient boosted tree hyperparameters."""

    model_config = SettingsConfigDict(env_prefix="CLASSIFIER_")

    n_estimators: int = 100
    learning_rate: float = 0.2
    max_leaf_nodes: int = 20
    min_samples_leaf: int = 10
    subsample: float = 0.8  # < 1.0 so the seed affects the fit
    base_seed: int = 42


class StoreSettings(BaseSettings):
    """Result store (SQLite) settings."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    db_path: str = "data/sessions.db"
    write_timeout_seconds: float = 5.0


class DashboardSettings(BaseSettings):
    """Health API server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"
    market: MarketDataSettings = MarketDataSettings()
    session: SessionSettings = SessionSettings()
    classifier: ClassifierSettings = ClassifierSettings()
    store: StoreSettings = StoreSettings()
    dashboard: DashboardSettings = DashboardSettings()
