import datetime
import os

from fileindex.core.errors import ConfigError


def to_slash(path: str) -> str:
    """把系统路径分隔符统一成 /"""
    if os.sep != "/":
        path = path.replace(os.sep, "/")
    if os.altsep and os.altsep != "/":
        path = path.replace(os.altsep, "/")
    return path


def resolve_target_dir(input_path: str) -> str:
    """
    解析配置中的目标目录
    返回: 绝对路径（分隔符统一为 /）
    目录不存在或不是目录时抛出 ConfigError
    """
    if not input_path or not input_path.strip():
        raise ConfigError("配置文件中缺少path字段")

    abs_path = os.path.abspath(to_slash(input_path.strip()))

    if not os.path.exists(abs_path):
        raise ConfigError(f"目标目录不存在: {to_slash(abs_path)}")
    if not os.path.isdir(abs_path):
        raise ConfigError(f"目标路径不是目录: {to_slash(abs_path)}")

    return to_slash(abs_path)


def mtime_to_str(mtime: float) -> str:
    """
    将 st_mtime 转换为 RFC 3339 字符串 (YYYY-MM-DDTHH:MM:SSZ)，统一用 UTC
    """
    try:
        dt = datetime.datetime.fromtimestamp(int(mtime), tz=datetime.timezone.utc)
    except (OSError, OverflowError, ValueError):
        # 处理某些极端异常的时间戳
        return ""
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_size(size_bytes: int) -> str:
    """
    将字节大小转换为 KB, MB, GB 格式
    """
    KB = 1024
    MB = KB * 1024
    GB = MB * 1024

    if size_bytes >= GB:
        return f"{size_bytes / GB:.2f} GB"
    elif size_bytes >= MB:
        return f"{size_bytes / MB:.2f} MB"
    elif size_bytes >= KB:
        return f"{size_bytes / KB:.2f} KB"
    else:
        return f"{size_bytes} B"
