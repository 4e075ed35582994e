"""borgbridge – process orchestration backend for a BorgBackup desktop front-end."""

__version__ = "0.3.0"
