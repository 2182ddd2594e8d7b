# taxonomy.py
"""
The fixed ESC-50 two-level taxonomy (category -> label).

Seeding is idempotent; everything else here is read-only lookups.
"""

from .models import Category, Label

ESC50_DATA = {
    "Animals": [
        "dog", "rooster", "pig", "cow", "frog",
        "cat", "hen", "insects", "sheep", "crow",
    ],
    "Natural soundscapes & water sounds": [
        "rain", "sea_waves", "crackling_fire", "crickets", "chirping_birds",
        "water_drops", "wind", "pouring_water", "toilet_flush", "thunderstorm",
    ],
    "Human, non-speech sounds": [
        "crying_baby", "sneezing", "clapping", "breathing", "coughing",
        "footsteps", "laughing", "brushing_teeth", "snoring", "drinking_sipping",
    ],
    "Interior/domestic sounds": [
        "door_wood_knock", "mouse_click", "keyboard_typing", "door_wood_creaks", "can_opening",
        "washing_machine", "vacuum_cleaner", "clock_alarm", "clock_tick", "glass_breaking",
    ],
    "Exterior/urban noises": [
        "helicopter", "chainsaw", "siren", "car_horn", "engine",
        "train", "church_bells", "airplane", "fireworks", "hand_saw",
    ],
}

ALL_LABELS = [name for labels in ESC50_DATA.values() for name in labels]

_LABEL_COLUMNS = """
    SELECT l.id, l.name, l.description,
           c.id AS category_id, c.name AS category_name,
           c.description AS category_description
      FROM labels l
      JOIN categories c ON l.category_id = c.id
"""


def category_of(label_name):
    """Category name for a label from the static table, or None."""
    for category, labels in ESC50_DATA.items():
        if label_name in labels:
            return category
    return None


def seed_taxonomy(conn):
    """Insert any missing categories and labels. Returns (new_categories, new_labels)."""
    new_categories = 0
    for name, labels in ESC50_DATA.items():
        new_categories += conn.execute(
            "INSERT INTO categories (name, description) VALUES (%s, %s) "
            "ON CONFLICT (name) DO NOTHING",
            (name, f"ESC-50 category containing {len(labels)} sound classes"),
        )

    category_ids = {
        row["name"]: row["id"]
        for row in conn.fetch_all("SELECT id, name FROM categories")
    }

    new_labels = 0
    for category, labels in ESC50_DATA.items():
        for name in labels:
            new_labels += conn.execute(
                "INSERT INTO labels (name, category_id, description) VALUES (%s, %s, %s) "
                "ON CONFLICT (name) DO NOTHING",
                (
                    name,
                    category_ids[category],
                    f"ESC-50 environmental sound class from {category} category",
                ),
            )

    if new_categories or new_labels:
        print(f"📂 Taxonomy seeded: {new_categories} new categories, {new_labels} new labels")
    return new_categories, new_labels


def _label_from_row(row):
    category = Category(
        id=row["category_id"],
        name=row["category_name"],
        description=row["category_description"],
    )
    return Label(id=row["id"], name=row["name"], category=category, description=row["description"])


def resolve_label(conn, name):
    """Exact, case-sensitive lookup. Returns a Label or None."""
    row = conn.fetch_one(_LABEL_COLUMNS + " WHERE l.name = %s", (name,))
    if row is None:
        return None
    return _label_from_row(row)


def list_categories(conn):
    """[(Category, [Label, ...]), ...] ordered by category name, labels by name."""
    categories = [
        Category(id=row["id"], name=row["name"], description=row["description"])
        for row in conn.fetch_all("SELECT id, name, description FROM categories ORDER BY name")
    ]
    members = {category.id: [] for category in categories}
    for row in conn.fetch_all(_LABEL_COLUMNS + " ORDER BY c.name, l.name"):
        members[row["category_id"]].append(_label_from_row(row))
    return [(category, members[category.id]) for category in categories]
