"""配置加载器测试

测试 YAML 配置加载和配置管理功能
"""

import pytest

from ydb.config import (
    AppSettings,
    ConfigLoader,
    DatabaseSettings,
    load_yaml_config,
)
from ydb.orm import TransactionPropagation


SAMPLE_YAML = """
database:
  url: "sqlite+aiosqlite:///./app.db"
  pool_size: 8
databases:
  reporting:
    url: "sqlite+aiosqlite:///./reporting.db"
transaction:
  default_propagation: requires_new
logging:
  level: "DEBUG"
"""


@pytest.fixture(autouse=True)
def clear_config_cache():
    ConfigLoader.clear_cache()
    yield
    ConfigLoader.clear_cache()


class TestConfigLoader:
    """ConfigLoader 测试"""

    def test_load_yaml_config(self, temp_file):
        """测试加载 YAML 配置"""
        path = temp_file("settings.yaml", SAMPLE_YAML)

        config = ConfigLoader.load(path, use_cache=False)

        assert config["database"]["url"] == "sqlite+aiosqlite:///./app.db"
        assert config["transaction"]["default_propagation"] == "requires_new"

    def test_config_caching(self, temp_file):
        """测试配置缓存"""
        path = temp_file("settings.yaml", SAMPLE_YAML)

        config1 = ConfigLoader.load(path)
        config2 = ConfigLoader.load(path)

        assert config1 is config2

    def test_cache_does_not_auto_refresh_until_reload(self, temp_file):
        """测试缓存不会自动刷新，需显式 reload"""
        path = temp_file("settings.yaml", "app_name: v1")

        assert ConfigLoader.load(path)["app_name"] == "v1"

        with open(path, "w", encoding="utf-8") as f:
            f.write("app_name: v2\n")

        assert ConfigLoader.load(path)["app_name"] == "v1"
        assert ConfigLoader.reload(path)["app_name"] == "v2"

    def test_relative_path_with_base_dir(self, temp_file, tmp_path):
        temp_file("conf/settings.yaml", "app_name: base")

        config = ConfigLoader.load("conf/settings.yaml", base_dir=str(tmp_path))

        assert config["app_name"] == "base"

    def test_empty_file(self, temp_file):
        path = temp_file("empty.yaml", "")
        assert ConfigLoader.load(path) == {}

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load(str(tmp_path / "missing.yaml"))


class TestLoadYamlConfig:
    """load_yaml_config 测试"""

    def test_load_app_settings(self, temp_file):
        path = temp_file("settings.yaml", SAMPLE_YAML)

        settings = load_yaml_config(path, AppSettings)

        assert settings.database.url == "sqlite+aiosqlite:///./app.db"
        assert settings.database.pool_size == 8
        assert settings.get_database_settings("reporting").url == "sqlite+aiosqlite:///./reporting.db"
        assert settings.transaction.default_propagation == TransactionPropagation.REQUIRES_NEW
        assert settings.logging.level == "DEBUG"

    def test_overrides(self, temp_file):
        path = temp_file("database.yaml", "url: sqlite+aiosqlite:///./a.db\n")

        settings = load_yaml_config(path, DatabaseSettings, echo=True)

        assert settings.url == "sqlite+aiosqlite:///./a.db"
        assert settings.echo is True

    def test_overrides_do_not_mutate_cache(self, temp_file):
        path = temp_file("database.yaml", "url: sqlite+aiosqlite:///./a.db\n")

        load_yaml_config(path, DatabaseSettings, echo=True)

        assert "echo" not in ConfigLoader.load(path)
