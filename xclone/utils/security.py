"""
Small generators used by account flows: OTP codes, usernames and slugs
"""
import re
import secrets
import random
import time
from typing import List


def generate_otp(length: int = 6) -> str:
    """Numeric one-time passcode"""
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def username_base(full_name: str, email: str) -> str:
    """Lowercased full name without spaces, falling back to the email local part"""
    base = re.sub(r"[^a-z0-9_]", "", (full_name or "").lower().replace(" ", ""))
    if not base:
        base = re.sub(r"[^a-z0-9_]", "", email.split("@")[0].lower())
    return base or "user"


def username_candidates(base: str) -> List[str]:
    """Base name first, then a short random suffix, then a time based suffix"""
    timestamp = str(int(time.time() * 1000))[-4:]
    return [
        base,
        f"{base}{random.randint(0, 999)}",
        f"{base}{timestamp}{random.randint(0, 99)}",
    ]


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "-", name.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")
