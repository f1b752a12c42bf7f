"""
Credential and profile service.

Registration, password login and profile updates. Each operation returns the
canonical 'User' record that the session layer then wraps in a 'Session'.
Passwords are stored only as bcrypt hashes.
"""

from loguru import logger

from realtime_chat.chat_database.data_models.user import User, UserDatabase
from realtime_chat.errors import InvalidCredentialsError, NameTakenError, UserNotFoundError, ValidationError
from realtime_chat.utils.security import generate_unique_id, hash_password, verify_password

UNIQUE_ID_ATTEMPTS = 5


class AccountService:
    def __init__(self, user_db: UserDatabase) -> None:
        self.user_db = user_db

    async def register(self, name: str, password: str, color: str) -> User:
        """Create a user with a fresh '#XXXXXX' handle.

        A handle collision is retried with a new handle; a name collision
        raises 'NameTakenError'.
        """
        _require(name=name, password=password, color=color)
        password_hash = hash_password(password)

        for attempt in range(UNIQUE_ID_ATTEMPTS):
            if await self.user_db.get_user_by_name(name) is not None:
                raise NameTakenError("Username taken")
            try:
                record = await self.user_db.create_user(name, password_hash, color, generate_unique_id())
            except NameTakenError:
                logger.debug(f"Handle collision registering {name!r} (attempt {attempt + 1})")
                continue
            logger.info(f"Registered {record.name} as {record.unique_id}")
            return record.to_user()
        raise NameTakenError("Username or ID taken")

    async def authenticate(self, name: str, password: str) -> User:
        _require(name=name, password=password)
        record = await self.user_db.get_user_by_name(name)
        if record is None or not verify_password(password, record.password_hash):
            raise InvalidCredentialsError("Invalid credentials")
        return record.to_user()

    async def update_profile(self, user_id: int, name: str, color: str, password: str | None = None) -> User:
        _require(name=name, color=color)
        password_hash = hash_password(password) if password else None
        record = await self.user_db.update_user(user_id, name, color, password_hash)
        logger.info(f"Profile of user {user_id} updated")
        return record.to_user()

    async def get_user(self, user_id: int) -> User:
        record = await self.user_db.get_user_by_id(user_id)
        if record is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return record.to_user()


def _require(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
