from realtime_chat.accounts.service import AccountService

__all__ = ["AccountService"]
