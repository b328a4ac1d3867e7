"""Account constants: password policy and token sizes."""

import re

PASSWORD_MIN_LENGTH = 8

PASSWORD_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"[a-z]"), "Password must contain a lowercase letter."),
    (re.compile(r"[A-Z]"), "Password must contain an uppercase letter."),
    (re.compile(r"\d"), "Password must contain a digit."),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain a special character."),
]

TOKEN_BYTES = 32
