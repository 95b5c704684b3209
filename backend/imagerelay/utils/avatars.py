"""
Generated avatar URLs used as the last resort when no stored image resolves.
"""
from urllib.parse import quote


def name_color(name: str) -> str:
    """
    Stable six-digit hex color for a display name.

    Sums the character codes, takes the hex form and pads/truncates it
    to six characters.
    """
    code_sum = sum(ord(char) for char in name)
    return format(abs(code_sum), "x")[:6].ljust(6, "0")


def placeholder_avatar_url(
    name: str,
    base_url: str = "https://ui-avatars.com/api/",
    size: int = 256,
) -> str:
    """Deterministic placeholder image URL for a display name."""
    return (
        f"{base_url}?name={quote(name, safe='')}"
        f"&background={name_color(name)}&color=fff&size={size}"
    )
