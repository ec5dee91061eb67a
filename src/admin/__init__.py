from src.admin.settings_store import AdminSettingsStore

__all__ = ["AdminSettingsStore"]
