"""Иерархия исключений генератора нагрузки"""


class LoadgenError(Exception):
    """Базовое исключение"""

    def __init__(self, message: str):
        super().__init__(message)


class ConfigError(LoadgenError):
    """Некорректная конфигурация, обнаруживается до запуска воркеров"""


class BackendError(LoadgenError):
    """Ошибка ввода-вывода одной операции, не фатальна"""


class SetupError(LoadgenError):
    """Ошибка однократной подготовки backend, фатальна для воркера"""


class ChannelClosed(LoadgenError):
    """Сборщик статистики завершился, публиковать некуда"""

    def __init__(self, message: str = "results channel is closed"):
        super().__init__(message)
