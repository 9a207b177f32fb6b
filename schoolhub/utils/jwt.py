import jwt
import os
from datetime import timedelta, datetime, timezone
RANDOM_SECRET = os.getenv("RANDOM_SECRET", "secret")
ALGORITHM = "HS256"


def create_jwt(data: dict, expire: timedelta):
    expire_time = datetime.now(timezone.utc) + expire
    payload = {**data, "exp": expire_time}
    return jwt.encode(payload, RANDOM_SECRET, algorithm=ALGORITHM)


def decode_jwt(token: str) -> dict:
    return jwt.decode(token, RANDOM_SECRET, algorithms=[ALGORITHM])
