#!/usr/bin/env python3
"""交互式生成 .env 配置文件

使用方式：
    python scripts/setup_env.py

会引导用户填写必要的配置项，JWT 密钥自动随机生成，最终写入 .env 文件。
"""
import os
import secrets
from datetime import datetime

# 项目根目录
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_FILE = os.path.join(PROJECT_ROOT, ".env")


def generate_secret(length: int = 32) -> str:
    """生成随机十六进制密钥"""
    return secrets.token_hex(length)


# 配置项定义：(env_key, 描述, 默认值, 是否必填)
CONFIG_ITEMS = [
    # === 数据库 ===
    ("DATABASE_URL", "数据库连接地址", "sqlite:///data/fund_calendar.db", False),
    ("DB_POOL_SIZE", "连接池大小", "10", False),
    ("DB_POOL_TIMEOUT", "获取连接超时秒数", "60", False),

    # === Web 服务 ===
    ("WEB_HOST", "Web 监听地址", "0.0.0.0", False),
    ("WEB_PORT", "Web 监听端口", "3001", False),
    ("CORS_ORIGIN", "前端地址（跨域白名单）", "http://localhost:3000", False),

    # === 初始管理员 ===
    ("ADMIN_PHONE", "初始管理员手机号", "13800000000", False),
    ("ADMIN_PASSWORD", "初始管理员密码（至少 6 位）", "", True),

    # === 日志 ===
    ("LOG_LEVEL", "日志级别", "INFO", False),
]

SECTION_NAMES = {
    "DATABASE": "# === 数据库配置 ===",
    "DB": "# === 数据库配置 ===",
    "WEB": "# === Web 服务配置 ===",
    "CORS": "# === Web 服务配置 ===",
    "ADMIN": "# === 初始管理员 ===",
    "LOG": "# === 日志配置 ===",
}


def build_env_lines(values):
    """根据收集到的配置值生成 .env 内容（含随机 JWT 密钥）"""
    env_lines = [
        "# 私募产品开放日日历 配置文件",
        "# 由 scripts/setup_env.py 自动生成",
        f"# 生成时间: {datetime.now().isoformat(timespec='seconds')}",
    ]

    for key, _, _, _ in CONFIG_ITEMS:
        header = SECTION_NAMES.get(key.split("_")[0], "# === 其他 ===")
        if header not in env_lines:
            env_lines.append("")
            env_lines.append(header)
        env_lines.append(f"{key}={values[key]}")

    env_lines.append("")
    env_lines.append("# === 认证配置（已生成随机密钥） ===")
    env_lines.append(f"JWT_SECRET={generate_secret(32)}")
    env_lines.append("JWT_EXPIRES_DAYS=7")
    return env_lines


def ask(key: str, desc: str, default: str, required: bool) -> str:
    """读取单个配置项；必填项为空时重复询问"""
    hint = f" [{default}]" if default else ""
    label = "（必填）" if required else ""
    print(f"{desc}{label}")
    while True:
        answer = input(f"  {key}{hint} > ").strip() or default
        if answer or not required:
            return answer
        print("  该项不能为空")


def main():
    print("=" * 60)
    print("  私募产品开放日日历 - .env 配置向导")
    print("=" * 60)

    if os.path.exists(ENV_FILE):
        overwrite = input(f"{ENV_FILE} 已存在，覆盖？(y/N) ").strip().lower()
        if overwrite != "y":
            print("未做任何修改。")
            return

    values = {
        key: ask(key, desc, default, required)
        for key, desc, default, required in CONFIG_ITEMS
    }

    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write("\n".join(build_env_lines(values)) + "\n")

    print()
    print(f"已写入 {ENV_FILE}")
    print("下一步：python scripts/init_db.py && python app.py")


if __name__ == "__main__":
    main()
