"""
Chat controller (Facade).

'ChatController' is the single entry point for the HTTP layer. It coordinates
the account service, the session store and the broadcast hub so that route
handlers never talk to storage directly:

    'register'        - create an account and return its public handle.
    'login'           - check credentials and open a 30-day session.
    'update_profile'  - change name / color / password and refresh every
                        cached snapshot of that user in the session store.
    'logout'          - revoke a session token.
    'online_users'    - the current presence snapshot.

The realtime path goes straight to 'BroadcastHub'; the controller only owns it
so both surfaces share one set of backends.
"""

from pydantic import BaseModel

from realtime_chat.accounts.service import AccountService
from realtime_chat.chat_database.data_models.message import MessageDatabase
from realtime_chat.chat_database.data_models.user import User, UserDatabase
from realtime_chat.realtime.hub import BroadcastHub
from realtime_chat.sessions.base import Session, SessionStore


class RegisterInput(BaseModel):
    name: str = ""
    password: str = ""
    color: str = ""


class LoginInput(BaseModel):
    name: str = ""
    password: str = ""


class ProfileInput(BaseModel):
    name: str = ""
    color: str = ""
    password: str | None = None


class LoginResult(BaseModel):
    token: str
    user: User


class ChatController:
    def __init__(
        self,
        user_db: UserDatabase,
        message_db: MessageDatabase,
        sessions: SessionStore,
        hub: BroadcastHub,
    ):
        self.user_db = user_db
        self.message_db = message_db
        self.sessions = sessions
        self.hub = hub
        self.accounts = AccountService(user_db)

    async def register(self, user_input: RegisterInput) -> User:
        return await self.accounts.register(user_input.name, user_input.password, user_input.color)

    async def login(self, user_input: LoginInput) -> LoginResult:
        user = await self.accounts.authenticate(user_input.name, user_input.password)
        token = await self.sessions.create(user)
        return LoginResult(token=token, user=user)

    async def authenticate_token(self, token: str) -> Session:
        return await self.sessions.validate(token)

    async def update_profile(self, token: str, profile: ProfileInput) -> User:
        session = await self.sessions.validate(token)
        user = await self.accounts.update_profile(session.user.id, profile.name, profile.color, profile.password)
        await self.sessions.refresh_user_everywhere(user)
        return user

    async def logout(self, token: str) -> bool:
        return await self.sessions.revoke(token)

    def online_users(self) -> list[User]:
        return self.hub.online_users()

    async def close(self) -> None:
        await self.hub.close_all()
        await self.message_db.close()
