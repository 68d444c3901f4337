import os
from typing import Dict, List, Optional, Tuple

from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError, field_validator

from fileindex.core.errors import ConfigError
from fileindex.core.fs_utils import resolve_target_dir

DEFAULT_CONFIG_FILE = "config.env"
CONFIG_FILE_ENV = "FILEINDEX_CONFIG"

# 配置文件里的键名 -> Settings 字段
CONFIG_KEYS = {
    "path": "target_path",
    "time": "schedule_time",
    "db": "db_path",
    "host": "host",
    "port": "port",
    "case_sensitive": "case_sensitive",
    "skip_dirs": "skip_dirs",
    "log_level": "log_level",
}


def parse_schedule_time(value: str) -> Tuple[int, int]:
    """
    解析每日定时扫描时间
    - value: "HH:MM"
    返回: (hour, minute)
    """
    if not value:
        raise ConfigError("配置文件中缺少time字段")

    parts = value.strip().split(":")
    if len(parts) != 2:
        raise ConfigError("时间格式应为HH:MM")

    hour_str, minute_str = parts
    if not (hour_str.isascii() and hour_str.isdigit()) or not 0 <= int(hour_str) <= 23:
        raise ConfigError("无效的小时数")
    if not (minute_str.isascii() and minute_str.isdigit()) or not 0 <= int(minute_str) <= 59:
        raise ConfigError("无效的分钟数")

    return int(hour_str), int(minute_str)


class Settings(BaseModel):
    target_path: str
    schedule_time: str
    db_path: str = "./sql.db"
    host: str = "0.0.0.0"
    port: int = 8899
    case_sensitive: bool = False
    skip_dirs: List[str] = []
    log_level: str = "info"

    @field_validator("target_path")
    @classmethod
    def _check_target_path(cls, v: str) -> str:
        return resolve_target_dir(v)

    @field_validator("schedule_time")
    @classmethod
    def _check_schedule_time(cls, v: str) -> str:
        parse_schedule_time(v)
        return v.strip()

    @field_validator("skip_dirs", mode="before")
    @classmethod
    def _split_skip_dirs(cls, v):
        if isinstance(v, str):
            return [d.strip() for d in v.split(",") if d.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, v: str) -> str:
        level = v.strip().lower()
        if level not in ("critical", "error", "warning", "info", "debug"):
            raise ValueError(f"无效的日志级别: {v}")
        return level

    @property
    def schedule(self) -> Tuple[int, int]:
        return parse_schedule_time(self.schedule_time)


def _read_raw(env_file: str, environ: Dict[str, str]) -> Dict[str, str]:
    raw: Dict[str, str] = {}
    if os.path.exists(env_file):
        for key, value in dotenv_values(env_file).items():
            if value is not None:
                raw[key.lower()] = value

    # 环境变量优先于配置文件
    for key in CONFIG_KEYS:
        if key in environ:
            raw[key] = environ[key]
    return raw


def load_settings(env_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    读取 config.env 与环境变量，返回校验后的 Settings
    缺失或非法的配置统一抛出 ConfigError
    """
    if environ is None:
        environ = dict(os.environ)
    if env_file is None:
        env_file = environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)

    raw = _read_raw(env_file, environ)

    if not raw.get("path"):
        raise ConfigError("配置文件中缺少path字段")
    if not raw.get("time"):
        raise ConfigError("配置文件中缺少time字段")

    fields = {CONFIG_KEYS[k]: v for k, v in raw.items() if k in CONFIG_KEYS}
    try:
        return Settings(**fields)
    except ValidationError as e:
        # ConfigError 会直接抛出，这里只处理其余的校验错误
        messages = []
        for err in e.errors():
            exc = (err.get("ctx") or {}).get("error")
            messages.append(str(exc) if exc is not None else f"{'.'.join(map(str, err['loc']))}: {err['msg']}")
        raise ConfigError("; ".join(messages)) from e
