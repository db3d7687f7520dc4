"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./payment_intents.db"
    echo: bool = False


class PaymentIntentSettings(BaseModel):
    # 单商户部署：所有操作都显式携带 scope_id，这里只提供默认值
    scope_id: str = "demo-merchant"
    default_currency: str = "GBP"
    default_method: str = "QR"
    default_expiry_seconds: int = 300
    max_expiry_seconds: int = 60 * 60
    default_list_limit: int = 50
    max_list_limit: int = 200
    default_failure_reason: str = "DECLINED"
    # 生成 customer_url（收银端二维码内容）使用的对外地址
    public_base_url: str = "http://localhost:8000"
    # 单次存储调用的超时（秒），超时视为可重试错误
    store_timeout_seconds: float = 5.0


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Payment Intent Service")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 分组配置：Database/PaymentIntent 采用嵌套模型，环境变量形如 DATABASE__URL
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    payment_intent: PaymentIntentSettings = Field(default_factory=PaymentIntentSettings)

    # CORS配置（收银端 App 与本地调试工具）
    CORS_ORIGINS: list = Field(default=["*"])

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
