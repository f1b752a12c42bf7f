from realtime_chat.api.app import build_controller, create_app

__all__ = ["build_controller", "create_app"]
