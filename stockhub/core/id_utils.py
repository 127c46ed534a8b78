import uuid

import shortuuid


def new_id() -> str:
    return str(uuid.uuid4())


def generate_short_token(length: int = 12) -> str:
    return shortuuid.ShortUUID().random(length=length)
