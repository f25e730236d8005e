"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    1. 运行 python scripts/setup_env.py 生成 .env 文件（含随机 JWT 密钥）
    2. 或手动创建 .env 文件
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/fund_calendar.db"
    db_pool_size: int = 10
    db_pool_timeout: int = 60  # 获取连接的最长等待秒数

    # ========== 认证 ==========
    jwt_secret: str = "change-me-to-a-random-secret-key"
    jwt_expires_days: int = 7
    bcrypt_rounds: int = 12

    # ========== Web 服务 ==========
    web_host: str = "0.0.0.0"
    web_port: int = 3001
    cors_origin: str = "http://localhost:3000"

    # ========== 日历 ==========
    calendar_min_year: int = 2020
    calendar_max_year: int = 2030

    # ========== 初始管理员（scripts/init_db.py 使用） ==========
    admin_phone: str = "13800000000"
    admin_password: str = "admin123"

    # ========== 日志 ==========
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# 全局配置实例
settings = Settings()
