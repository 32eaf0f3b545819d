# fleetdeploy/utils/crypto.py
import logging
import os
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

_SECRET_KEY_ENV = "FLEETDEPLOY_SECRET_KEY"


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    key = os.getenv(_SECRET_KEY_ENV)
    if not key:
        # pool state is in-memory only, so a per-process key is enough
        logger.info("%s is not set, using a per-process key", _SECRET_KEY_ENV)
        return Fernet(Fernet.generate_key())
    return Fernet(key.encode())


def encrypt_text(plain: str) -> str:
    f = _get_fernet()
    token = f.encrypt(plain.encode("utf-8"))
    return token.decode("utf-8")


def decrypt_text(token: str) -> Optional[str]:
    f = _get_fernet()
    try:
        return f.decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        return None
