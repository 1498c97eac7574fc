from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "Lab Orders API"
    APP_VERSION: str = "1.0.0"

    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    TOKEN_SECRET: str = "dev-secret-change-in-production"
    TOKEN_TTL_SECONDS: int = 7 * 24 * 60 * 60

    # False removes deleted orders from the store instead of flagging them
    SOFT_DELETE: bool = True


config = Config()
