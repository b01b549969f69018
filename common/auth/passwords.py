"""Password hashing helpers (bcrypt via passlib)

bcrypt is deliberately slow, so both calls run in the threadpool and keep
the event loop free for other requests and realtime broadcasts.
"""

from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


async def hash_password(password: str) -> str:
    return await run_in_threadpool(pwd_context.hash, password)


async def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return await run_in_threadpool(pwd_context.verify, plain_password, password_hash)
