"""AccountRepository: login, access token, moderation, currency and provisioning.

Every statement goes through SqlExecutor under a logical key, so repeated calls
reuse one statement shape and only bind new values.

Currency balances are mutated exclusively with `UPDATE ... SET gold = gold +
:delta ... RETURNING gold`; there is no read-modify-write in Python. The
currency row is created lazily; a concurrent first insert for the same account
is rejected by the primary key and treated as "already exists".

Each public method runs in its own short session unless noted otherwise.
"""

import logging
from collections.abc import Callable

from src.gs_account.auth.credentials import (
    generate_account_id,
    hash_password,
    verify_password,
)
from src.gs_account.domain.models import ProvisionResult, ProvisionStatus
from src.gs_common.errors import DuplicateKeyError, TransactionFailureError
from src.gs_common.executor import ABSENT, SqlExecutor
from src.gs_common.predicates import lower, where_equal_to, where_like

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Logical keys
# ---------------------------------------------------------------------------

_VALIDATE_USER_LOGIN = "VALIDATE_USER_LOGIN"
_VALIDATE_ACCESS_TOKEN = "VALIDATE_ACCESS_TOKEN"
_UPDATE_ACCESS_TOKEN = "UPDATE_ACCESS_TOKEN"
_GET_USER_LEVEL = "GET_USER_LEVEL"
_GET_USER_UNBAN_TIME = "GET_USER_UNBAN_TIME"
_COUNT_USER_CURRENCIES = "COUNT_USER_CURRENCIES"
_CREATE_USER_CURRENCIES = "CREATE_USER_CURRENCIES"
_GET_GOLD = "GET_GOLD"
_GET_CASH = "GET_CASH"
_CHANGE_GOLD = "CHANGE_GOLD"
_CHANGE_CASH = "CHANGE_CASH"
_CREATE_USER_LOGIN_USERS = "CREATE_USER_LOGIN_USERS"
_CREATE_USER_LOGIN_ACCESSES = "CREATE_USER_LOGIN_ACCESSES"
_CREATE_USER_LOGIN_CURRENCIES = "CREATE_USER_LOGIN_CURRENCIES"
_FIND_USERNAME = "FIND_USERNAME"
_FIND_EMAIL = "FIND_EMAIL"
_SET_UNBAN_TIME_SELECT_USER_ID = "SET_USER_UNBAN_TIME_BY_CHARACTER_NAME_SELECT_USER_ID"
_SET_UNBAN_TIME_UPDATE = "SET_USER_UNBAN_TIME_BY_CHARACTER_NAME_UPDATE"
_SET_CHARACTER_UNMUTE_TIME = "SET_CHARACTER_UNMUTE_TIME_BY_NAME"
_VALIDATE_EMAIL_VERIFICATION = "VALIDATE_EMAIL_VERIFICATION"
_UPDATE_USER_COUNT = "UPDATE_USER_COUNT"

# server_statistic holds a single row under this id
_SERVER_STATISTIC_ID = 1


class AccountRepository:
    """Stateless apart from its collaborators; instantiate once and share."""

    def __init__(
        self,
        executor: SqlExecutor,
        *,
        password_hasher: Callable[[str], str] = hash_password,
        password_verifier: Callable[[str, str], bool] = verify_password,
        id_generator: Callable[[], str] = generate_account_id,
    ) -> None:
        self._executor = executor
        self._hash_password = password_hasher
        self._verify_password = password_verifier
        self._generate_id = id_generator

    # ------------------------------------------------------------------
    # Login / access token
    # ------------------------------------------------------------------

    async def validate_user_login(self, username: str, password: str) -> str:
        """Return the account ID, or "" for an unknown user or a wrong password.

        NOTE: an unknown username skips password verification, so it answers
        faster than a wrong password for an existing user. Kept as-is.
        """
        async with self._executor.select_rows(
            _VALIDATE_USER_LOGIN,
            "users",
            ["id", "password"],
            where_equal_to("username", username),
            limit=1,
        ) as rows:
            row = await rows.first()
        if row is None:
            return ""
        user_id, hashed_password = row[0], row[1]
        if not self._verify_password(password, hashed_password):
            return ""
        return str(user_id)

    async def validate_access_token(self, user_id: str, access_token: str) -> bool:
        count = await self._executor.count(
            _VALIDATE_ACCESS_TOKEN,
            "users",
            where_equal_to("id", user_id).and_equal_to("access_token", access_token),
        )
        return count > 0

    async def update_access_token(self, user_id: str, access_token: str) -> None:
        await self._executor.update(
            _UPDATE_ACCESS_TOKEN,
            "users",
            {"access_token": access_token},
            where_equal_to("id", user_id),
        )

    # ------------------------------------------------------------------
    # Levels / bans / mutes
    # ------------------------------------------------------------------

    async def get_user_level(self, user_id: str) -> int:
        result = await self._executor.select_scalar(
            _GET_USER_LEVEL, "user_accesses", "level", where_equal_to("id", user_id)
        )
        return 0 if result is ABSENT or result is None else int(result)

    async def get_user_unban_time(self, user_id: str) -> int:
        result = await self._executor.select_scalar(
            _GET_USER_UNBAN_TIME, "user_accesses", "unban_time", where_equal_to("id", user_id)
        )
        return 0 if result is ABSENT or result is None else int(result)

    async def set_user_unban_time_by_character_name(
        self, character_name: str, unban_time: int
    ) -> None:
        """Resolve the character's owner (case-insensitive) and upsert its unban time.

        An unknown character name is a no-op.
        """
        async with self._executor.transaction() as db:
            async with self._executor.select_rows(
                _SET_UNBAN_TIME_SELECT_USER_ID,
                "characters",
                ["user_id"],
                where_like(lower("character_name"), character_name.lower()),
                limit=1,
                db=db,
            ) as rows:
                row = await rows.first()
            user_id = row[0] if row is not None else None
            if not user_id or not str(user_id).strip():
                logger.debug("No character named %s, unban skipped", character_name)
                return
            await self._executor.upsert(
                _SET_UNBAN_TIME_UPDATE,
                "user_accesses",
                "id",
                {"unban_time": unban_time, "id": user_id},
                db=db,
            )

    async def set_character_unmute_time_by_name(
        self, character_name: str, unmute_time: int
    ) -> None:
        await self._executor.update(
            _SET_CHARACTER_UNMUTE_TIME,
            "characters",
            {"unmute_time": unmute_time},
            where_like(lower("character_name"), character_name.lower()),
        )

    # ------------------------------------------------------------------
    # Currencies
    # ------------------------------------------------------------------

    async def prepare_user_currencies(self, user_id: str) -> None:
        """Make sure the account has a currency row (zero balances if new)."""
        count = await self._executor.count(
            _COUNT_USER_CURRENCIES, "user_currencies", where_equal_to("id", user_id)
        )
        if count > 0:
            return
        try:
            await self._executor.insert(
                _CREATE_USER_CURRENCIES,
                "user_currencies",
                {"id": user_id, "gold": 0, "cash": 0},
            )
        except DuplicateKeyError:
            # Lost the race against another first access; the row exists now
            logger.debug("Currencies for %s created concurrently", user_id)

    async def get_gold(self, user_id: str) -> int:
        return await self._get_currency(_GET_GOLD, "gold", user_id)

    async def get_cash(self, user_id: str) -> int:
        return await self._get_currency(_GET_CASH, "cash", user_id)

    async def change_gold(self, user_id: str, gold: int) -> int:
        """Add `gold` (may be negative) and return the resulting balance."""
        return await self._change_currency(_CHANGE_GOLD, "gold", user_id, gold)

    async def change_cash(self, user_id: str, cash: int) -> int:
        """Add `cash` (may be negative) and return the resulting balance."""
        return await self._change_currency(_CHANGE_CASH, "cash", user_id, cash)

    async def _get_currency(self, key: str, column: str, user_id: str) -> int:
        await self.prepare_user_currencies(user_id)
        result = await self._executor.select_scalar(
            key, "user_currencies", column, where_equal_to("id", user_id)
        )
        return 0 if result is ABSENT or result is None else int(result)

    async def _change_currency(self, key: str, column: str, user_id: str, delta: int) -> int:
        await self.prepare_user_currencies(user_id)
        result = await self._executor.increment(
            key, "user_currencies", column, delta, where_equal_to("id", user_id)
        )
        return 0 if result is ABSENT or result is None else int(result)

    # ------------------------------------------------------------------
    # Provisioning / discovery
    # ------------------------------------------------------------------

    async def create_user_login(
        self, username: str, password: str, email: str | None = None
    ) -> ProvisionResult:
        """Insert users, user_accesses and user_currencies rows in one transaction.

        Never raises: failures are rolled back, logged and reported through the
        returned ProvisionResult.
        """
        user_id = self._generate_id()
        try:
            hashed_password = self._hash_password(password)
            async with self._executor.transaction() as db:
                await self._executor.insert(
                    _CREATE_USER_LOGIN_USERS,
                    "users",
                    {
                        "id": user_id,
                        "username": username,
                        "password": hashed_password,
                        "email": email if email and email.strip() else None,
                    },
                    db=db,
                )
                await self._executor.insert(
                    _CREATE_USER_LOGIN_ACCESSES, "user_accesses", {"id": user_id}, db=db
                )
                await self._executor.insert(
                    _CREATE_USER_LOGIN_CURRENCIES, "user_currencies", {"id": user_id}, db=db
                )
        except DuplicateKeyError as exc:
            logger.error("create_user_login rejected for %s: %s", username, exc.message)
            return ProvisionResult(ProvisionStatus.CONFLICT, error=exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("create_user_login transaction failed for %s", username)
            failure = TransactionFailureError("create_user_login", repr(exc))
            return ProvisionResult(ProvisionStatus.FAILED, error=failure)

        logger.info("Created login %s (%s)", username, user_id)
        return ProvisionResult(ProvisionStatus.CREATED, user_id=user_id)

    async def find_username(self, username: str) -> int:
        """Case-insensitive LIKE count, for availability checks."""
        return await self._executor.count(
            _FIND_USERNAME, "users", where_like(lower("username"), username.lower())
        )

    async def find_email(self, email: str) -> int:
        """Case-insensitive LIKE count, for availability checks."""
        return await self._executor.count(
            _FIND_EMAIL, "users", where_like(lower("email"), email.lower())
        )

    async def validate_email_verification(self, user_id: str) -> bool:
        count = await self._executor.count(
            _VALIDATE_EMAIL_VERIFICATION,
            "users",
            where_equal_to("id", user_id).and_equal_to("is_verify", True),
        )
        return count > 0

    async def update_user_count(self, user_count: int) -> None:
        await self._executor.upsert(
            _UPDATE_USER_COUNT,
            "server_statistic",
            "id",
            {"user_count": user_count, "id": _SERVER_STATISTIC_ID},
        )
