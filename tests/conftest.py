"""
Pytest 公共配置和 Fixtures

提供测试所需的公共资源：
- 内存数据源绑定的数据库门面（A / B 两个命名连接）
- SQLite 文件数据库 URL
- 临时文件工厂
"""

import os

import pytest

from ydb.orm import init_test_database

from tests.helpers import reset_databases


# ==================== 基础 Fixtures ====================

@pytest.fixture
def temp_file(tmp_path):
    """创建临时文件的工厂函数"""

    def _create_file(filename: str, content: str = "") -> str:
        filepath = os.path.join(str(tmp_path), filename)
        os.makedirs(os.path.dirname(filepath), exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(content)
        return filepath

    return _create_file


# ==================== 数据库 Fixtures ====================

@pytest.fixture(autouse=True)
def clean_databases():
    """每个测试前后清空数据库门面注册表"""
    reset_databases()
    yield
    reset_databases()


@pytest.fixture
def db():
    """默认连接，绑定内存数据源"""
    return init_test_database("default")


@pytest.fixture
def db_a():
    """命名连接 A，绑定内存数据源"""
    return init_test_database("A")


@pytest.fixture
def db_b():
    """命名连接 B，绑定内存数据源"""
    return init_test_database("B")


@pytest.fixture
def sqlite_url(tmp_path):
    """SQLite 文件数据库 URL（aiosqlite 驱动）

    使用文件而非内存数据库，保证多个事务各自拿到独立连接。
    """
    return f"sqlite+aiosqlite:///{tmp_path / 'ydb_test.db'}"
