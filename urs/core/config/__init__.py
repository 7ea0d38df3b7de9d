from urs.core.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "settings"]
