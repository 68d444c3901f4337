class FileIndexError(Exception):
    """所有索引服务异常的基类"""


class ConfigError(FileIndexError):
    """配置缺失或格式错误（启动阶段致命）"""


class StoreError(FileIndexError):
    """数据库无法打开、建表失败或读取失败"""


class RebuildError(StoreError):
    """重建过程中写入失败，事务已回滚"""


class RebuildSessionClosed(StoreError):
    """重建会话已提交或已放弃，不能继续使用"""
