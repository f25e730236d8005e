"""初始化数据库"""
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loguru import logger

from business.auth import hash_password
from config.settings import settings
from database import DatabaseManager


def init_database(database_url=None):
    """创建所有表，并在没有管理员时创建初始管理员账号"""
    logger.info("Initializing database...")

    db = DatabaseManager(database_url)
    try:
        logger.info("Creating tables...")
        db.create_tables()

        if db.users.get_active_by_phone(settings.admin_phone):
            logger.info(f"Admin {settings.admin_phone} already exists, skipped")
        else:
            password_hash, salt = hash_password(settings.admin_password)
            db.users.create({
                "phone": settings.admin_phone,
                "password_hash": password_hash,
                "password_salt": salt,
                "role": "admin",
                "real_name": "管理员",
            })
            logger.info(f"Created admin user: {settings.admin_phone}")
    finally:
        db.close()

    logger.info("Database initialization completed!")


if __name__ == "__main__":
    init_database()
