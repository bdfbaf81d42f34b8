def clean_id(value) -> str:
    """Canonical form of a record id: trimmed and upper-case (`` p101`` -> ``P101``)."""
    return str(value or "").strip().upper()
