def eur_to_cents(amount) -> int:
    return int(round(float(amount) * 100))


def cents_to_eur(cents: int) -> float:
    return round((cents or 0) / 100, 2)


def format_eur(cents: int) -> str:
    return f"€{(cents or 0) / 100:.2f}"
