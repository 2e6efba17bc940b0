"""Administrative divisions and districts of Bangladesh.

Post drafts may scope themselves to a division and a district from this
table; blank values mean the whole country.
"""

from __future__ import annotations

from typing import Final

BANGLADESH_LOCATIONS: Final[dict[str, tuple[str, ...]]] = {
    "Barishal": ("Barguna", "Barishal", "Bhola", "Jhalokathi", "Patuakhali", "Pirojpur"),
    "Chattogram": (
        "B.baria", "Bandarban", "Chandpur", "Chattogram", "Cox's bazar", "Cumilla",
        "Feni", "Khagrachari", "Laxmipur", "Noakhali", "Rangamati",
    ),
    "Dhaka": (
        "Dhaka", "Faridpur", "Gazipur", "Gopalganj", "Kishoreganj", "Madaripur",
        "Manikganj", "Munshiganj", "Narayanganj", "Narshingdi", "Rajbari",
        "Shariatpur", "Tangail",
    ),
    "Khulna": (
        "Bagerhat", "Chuadanga", "Jashore", "Jhenaidah", "Khulna", "Kushtia",
        "Magura", "Meherpur", "Narail", "Satkhira",
    ),
    "Mymensingh": ("Jamalpur", "Mymensingh", "Netrokona", "Sherpur"),
    "Rajshahi": (
        "Bogura", "Joypurhat", "Naogaon", "Natore", "Pabna", "Rajshahi",
        "Sirajganj", "C. nawabganj",
    ),
    "Rangpur": (
        "Dinajpur", "Gaibandha", "Kurigram", "Lalmonirhat", "Nilphamari",
        "Panchagarh", "Rangpur", "Thakurgaon",
    ),
    "Sylhet": ("Habiganj", "Moulvibazar", "Sunamganj", "Sylhet"),
}

DIVISIONS: Final[tuple[str, ...]] = tuple(BANGLADESH_LOCATIONS)


def districts_of(division: str) -> tuple[str, ...]:
    """Return the districts of ``division`` or an empty tuple if unknown."""
    return BANGLADESH_LOCATIONS.get(division, ())
