"""Instrument code normalization (``700`` -> ``hk00700``)."""

HK_PREFIX = "hk"
HK_DIGITS = 5


def normalize_hk_code(code: str) -> str:
    """Normalize a user-supplied code to ``hk`` followed by five digits.

    Already-prefixed codes are padded only when one digit short
    (``hk0700`` -> ``hk00700``); longer bare codes are prefixed as is.
    """
    code = code.strip().lower()
    if code.startswith(HK_PREFIX):
        if len(code) == len(HK_PREFIX) + HK_DIGITS - 1:
            return HK_PREFIX + "0" + code[len(HK_PREFIX):]
        return code
    if len(code) <= HK_DIGITS:
        return HK_PREFIX + code.zfill(HK_DIGITS)
    return HK_PREFIX + code


def to_eastmoney_secid(code: str) -> str:
    """Map a normalized HK code to an Eastmoney ``secid`` (``116.00700``)."""
    code = normalize_hk_code(code)
    return "116." + code[len(HK_PREFIX):]
