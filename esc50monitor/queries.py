# queries.py
"""
Read-only views over stored predictions and the taxonomy.
None of these write; storage failures surface as StorageUnavailable.
"""

import json
from datetime import datetime, timedelta, timezone

from .models import to_iso
from .taxonomy import list_categories


def list_recent_predictions(conn, limit=1000):
    rows = conn.fetch_all(
        """
        SELECT p.id,
               p.audio_file,
               l.name AS predicted_class,
               c.name AS superclass,
               p.confidence,
               p.processing_time,
               p.metadata,
               p.created_at
          FROM predictions p
          JOIN labels l ON p.label_id = l.id
          JOIN categories c ON l.category_id = c.id
         ORDER BY p.created_at DESC, p.id DESC
         LIMIT %s
        """,
        (limit,),
    )
    for row in rows:
        row["metadata"] = json.loads(row["metadata"] or "{}")
        row["created_at"] = to_iso(row["created_at"])
    return rows


def stats(conn, now=None):
    now = now or datetime.now(timezone.utc)

    total = conn.fetch_one("SELECT COUNT(*) AS count FROM predictions")
    per_label = conn.fetch_all(
        """
        SELECT l.name, COUNT(*) AS count
          FROM predictions p
          JOIN labels l ON p.label_id = l.id
         GROUP BY l.name
         ORDER BY count DESC, l.name
        """
    )
    per_category = conn.fetch_all(
        """
        SELECT c.name, COUNT(*) AS count
          FROM predictions p
          JOIN labels l ON p.label_id = l.id
          JOIN categories c ON l.category_id = c.id
         GROUP BY c.name
         ORDER BY count DESC, c.name
        """
    )
    recent = conn.fetch_one(
        "SELECT COUNT(*) AS count FROM predictions WHERE created_at >= %s",
        (now - timedelta(hours=24),),
    )
    average = conn.fetch_one("SELECT AVG(confidence) AS avg FROM predictions")

    return {
        "total_count": total["count"],
        "per_label_counts": per_label,
        "per_category_counts": per_category,
        "count_in_last_24h": recent["count"],
        # AVG over zero rows is NULL
        "average_confidence": average["avg"],
    }


def list_labels(conn):
    return conn.fetch_all(
        """
        SELECT l.id, l.name, c.name AS superclass, c.id AS superclass_id
          FROM labels l
          JOIN categories c ON l.category_id = c.id
         ORDER BY c.name, l.name
        """
    )


def taxonomy_info(conn):
    categories = [
        {
            "category": category.name,
            "description": category.description,
            "class_count": len(labels),
            "classes": [label.name for label in labels],
        }
        for category, labels in list_categories(conn)
    ]
    return {
        "total_categories": len(categories),
        "total_classes": sum(c["class_count"] for c in categories),
        "categories": categories,
    }
