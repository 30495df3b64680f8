from pydantic import field_validator
from pydantic_settings import BaseSettings

MAX_APP_FEE_PERCENT = 20


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://app:devpassword@db:5432/crowdfunding"

    WEPAY_CLIENT_ID: str = ""
    WEPAY_CLIENT_SECRET: str = ""
    WEPAY_TEST_MODE: bool = True
    WEPAY_TIMEOUT_SECONDS: float = 30.0

    # Shared with the payment gateway; checkout routes reject calls without it.
    WEPAY_GATEWAY_SECRET: str = ""

    # Percentage of each pledge the site keeps; empty disables the fee.
    WEPAY_APP_FEE: str = ""

    SUBMIT_PAGE_URL: str = "http://localhost:8000/submit"

    APP_ENV: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("WEPAY_APP_FEE", mode="before")
    @classmethod
    def _validate_app_fee(cls, value) -> str:
        if value is None:
            return ""
        value = str(value).strip()
        if value == "":
            return ""
        try:
            percent = int(value)
        except ValueError:
            raise ValueError(f"WEPAY_APP_FEE must be a whole number, got {value!r}")
        if not 0 <= percent <= MAX_APP_FEE_PERCENT:
            raise ValueError(
                f"WEPAY_APP_FEE must be between 0 and {MAX_APP_FEE_PERCENT}"
            )
        return str(percent)


settings = Settings()
