import unicodedata


def strip_unicode(s: str) -> str:
    """Decompose with NFKD and keep printable ASCII only.

    Accented letters keep their base letter, everything else outside
    0x20-0x7e is dropped.
    """
    decomposed = unicodedata.normalize("NFKD", s)
    return "".join(ch for ch in decomposed if 32 <= ord(ch) < 127)


def normalize_org(name: str) -> str:
    return name.lower()


def normalize_email(email: str) -> str:
    return strip_unicode(email)
