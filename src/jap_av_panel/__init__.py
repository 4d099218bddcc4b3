"""Browser control panel for Just Add Power receivers."""

__all__ = ["config", "logging", "transport", "reader", "dispatcher", "panel", "api"]
__version__ = "1.4.0"
