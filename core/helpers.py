import uuid


def new_id() -> str:
    """Client-side primary key; lets rows created offline keep their id on replay."""
    return str(uuid.uuid4())


def format_currency(amount) -> str:
    return f"₹{float(amount or 0):,.2f}"
