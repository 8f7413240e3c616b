class Config:
    name: str = "BaseService"


class LogConfig(Config):
    name: str = "LogService"
    root_log_dir: str = "~/groundpass/log/"
    log_file_name: str = "groundpass.log"
    log_level: str = "INFO"
    max_log_size: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 3


class StoreConfig(Config):
    name: str = "PassStore"
    passes_file: str = "~/groundpass/passes.json"
    KEEP_BACKUP: bool = True
