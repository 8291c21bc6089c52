from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # WhatsApp Cloud API
    wa_token: str = ""
    wa_phone_number_id: str = ""
    wa_graph_url: str = "https://graph.facebook.com"
    wa_graph_version: str = "v20.0"
    whatsapp_verify_token: str = ""

    # Ledger Service
    ledger_base_url: str = "http://localhost:8080"
    ledger_api_token: str = ""
    ledger_timeout_seconds: float = 10.0
    ledger_user_email_domain: str = "tata-mali.com"
    ledger_balance_symbols: str = "LZAR,ZAR"

    # Wallet rules
    app_name: str = "Tata Mali"
    currency_symbol: str = "R"
    max_transfer_amount: Decimal = Decimal("10000")

    # Links sent to users
    app_download_url: str = "https://your-app.com/download"
    app_user_register_url: str = "https://your-registration-app.com/register"
    public_base_url: str = "https://your-app.com"

    # Internal API
    webhook_api_key: str = ""

    # Webhook dedup
    dedup_ttl_seconds: int = 86400
    dedup_max_entries: int = 10000

    # Outbound notifications
    notify_max_attempts: int = 3
    notify_backoff_seconds: float = 0.5
    notify_timeout_seconds: float = 10.0

    # Operator alerts (Telegram)
    alert_bot_token: str = ""
    alert_chat_id: str = ""

    # Empty means in-memory session store and dedup
    redis_url: str = ""
    redis_socket_timeout_seconds: float = 0.5
    session_lock_timeout_seconds: float = 30.0

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def balance_symbols(self) -> list[str]:
        return [symbol.strip() for symbol in self.ledger_balance_symbols.split(",") if symbol.strip()]


settings = Settings()
