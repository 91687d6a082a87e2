from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="thanksapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "ThankATech Appreciation API"
    PROJECT_NAME: str = "ThankATech Ledger"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "simple"  # simple | json
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    POSTGRES_HOST: str = ""
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = ""
    POSTGRES_SCHEMA: str = "thanks"

    # Full URL override (sqlite:///./thanks.db for local runs)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    PAYMENT_WEBHOOK_SECRET: str = ""

    # AWS
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    SQS_ENDPOINT_URL: Optional[str] = None

    # 알림 큐 (비어 있으면 로그 출력으로 대체)
    NOTIFICATION_QUEUE_URL: Optional[str] = None

    # Token economics (달러 단위, 문자열로 받아 Decimal 변환)
    CUSTOMER_PAYS_PER_TOKEN: str = "0.01"
    TECHNICIAN_GETS_PER_TOKEN: str = "0.0085"
    PLATFORM_FEE_PER_TOKEN: str = "0.0015"
    MIN_TOKENS_PER_SEND: int = 5
    MAX_TOKENS_PER_SEND: int = 50

    # Points
    POINTS_PER_THANK_YOU: int = 1  # 무료 감사 - 수신자만 적립
    TOA_RECIPIENT_POINTS: int = 2  # 유료 전송 - 수신자 몫
    TOA_SENDER_POINTS: int = 1  # 유료 전송 - 발신자 몫

    # Conversion
    POINTS_PER_TOKEN: int = 5
    MINIMUM_CONVERSION_POINTS: int = 5
    MAX_DAILY_CONVERSIONS: int = 20

    # Daily limits
    MAX_DAILY_THANKS: int = 50  # 하루에 감사할 수 있는 서로 다른 기술자 수

    # Transactions
    TRANSACTION_MAX_ATTEMPTS: int = 5
    TRANSACTION_RETRY_BASE_DELAY: float = 0.05

    # Timezone (일일 제한의 날짜 경계)
    TIMEZONE: str = "UTC"


settings = Settings()
