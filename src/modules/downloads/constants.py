"""Download token constants."""

import re

from django.db import models


class TokenState(models.TextChoices):
    """Read-time state of a download token.  Never stored."""

    VALID_UNUSED = "valid_unused", "Valid, unused"
    VALID_PARTIALLY_USED = "valid_partially_used", "Valid, partially used"
    EXHAUSTED = "exhausted", "Exhausted"
    EXPIRED = "expired", "Expired"


# 32 random bytes, hex encoded.
TOKEN_BYTES = 32
TOKEN_LENGTH = TOKEN_BYTES * 2
TOKEN_PATTERN = re.compile(r"^[0-9a-f]{%d}$" % TOKEN_LENGTH)

OUTBOX_TOPIC = "downloads"
