import hmac
from typing import Optional


def bearer_matches(authorization: Optional[str], secret: str) -> bool:
    expected = f"Bearer {secret}"
    return hmac.compare_digest((authorization or "").encode("utf-8"), expected.encode("utf-8"))
