from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Savings Goals Bot"
    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    # Compared against X-Telegram-Bot-Api-Secret-Token; empty disables the check.
    telegram_webhook_secret: str = ""
    goals_state_path: str = "data/goals.json"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
