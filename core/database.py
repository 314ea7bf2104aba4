import json
import os
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.dedup import deal_hash
from models.deal import FilteredDeal

SORTABLE_COLUMNS = {
    "created_at", "updated_at", "discount_percentage", "confidence_score",
    "pricing_glitch_probability", "current_price",
}
JSON_COLUMNS = ("validation_flags", "suspicious_factors")


class DealStorage:
    """Accepted deals, upserted by identity hash."""

    def __init__(self, db_path="data/deals.db"):
        self.db_path = db_path
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._create_table()

    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_table(self):
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS deals (
                    hash TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    original_price REAL,
                    current_price REAL NOT NULL,
                    discount_percentage INTEGER NOT NULL,
                    url TEXT NOT NULL,
                    image TEXT,
                    site TEXT NOT NULL,
                    availability TEXT DEFAULT 'Unknown',
                    confidence_score INTEGER DEFAULT 0,
                    pricing_glitch_probability REAL DEFAULT 0,
                    filtering_reason TEXT DEFAULT '',
                    validation_flags TEXT DEFAULT '[]',
                    ai_analysis TEXT DEFAULT '',
                    suspicious_factors TEXT DEFAULT '[]',
                    recommendation_level TEXT DEFAULT 'MEDIUM',
                    created_at DATETIME,
                    updated_at DATETIME
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS discount_idx ON deals (discount_percentage DESC, created_at DESC)")
            cursor.execute("CREATE INDEX IF NOT EXISTS site_idx ON deals (site, created_at DESC)")
            cursor.execute("CREATE INDEX IF NOT EXISTS glitch_idx ON deals (pricing_glitch_probability DESC)")
            conn.commit()

    def _row_to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        record = dict(row)
        for column in JSON_COLUMNS:
            record[column] = json.loads(record[column] or "[]")
        return record

    def save_deal(self, deal: FilteredDeal) -> Dict[str, Any]:
        """Inserts the deal or refreshes the stored copy; created_at survives updates."""
        key = deal_hash(deal)
        now = datetime.now().isoformat(sep=" ", timespec="seconds")
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO deals (
                    hash, title, original_price, current_price, discount_percentage, url, image, site,
                    availability, confidence_score, pricing_glitch_probability, filtering_reason,
                    validation_flags, ai_analysis, suspicious_factors, recommendation_level,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(hash) DO UPDATE SET
                    title = excluded.title,
                    original_price = excluded.original_price,
                    current_price = excluded.current_price,
                    discount_percentage = excluded.discount_percentage,
                    url = excluded.url,
                    image = excluded.image,
                    availability = excluded.availability,
                    confidence_score = excluded.confidence_score,
                    pricing_glitch_probability = excluded.pricing_glitch_probability,
                    filtering_reason = excluded.filtering_reason,
                    validation_flags = excluded.validation_flags,
                    ai_analysis = excluded.ai_analysis,
                    suspicious_factors = excluded.suspicious_factors,
                    recommendation_level = excluded.recommendation_level,
                    updated_at = excluded.updated_at
                """,
                (
                    key, deal.title, deal.original_price, deal.current_price, deal.discount_percentage,
                    deal.url, deal.image, deal.site, deal.availability, deal.confidence_score,
                    deal.pricing_glitch_probability, deal.filtering_reason,
                    json.dumps(deal.validation_flags), deal.ai_analysis,
                    json.dumps(deal.suspicious_factors), deal.recommendation_level, now, now,
                ),
            )
            conn.commit()
            cursor.execute("SELECT * FROM deals WHERE hash = ?", (key,))
            return self._row_to_dict(cursor.fetchone())

    def get_deals(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 50,
        sort: Tuple[str, str] = ("created_at", "desc"),
    ) -> List[Dict[str, Any]]:
        """
        Supported filters: min_discount, min_confidence, min_glitch_probability, site.
        sort is (column, "asc"|"desc") over SORTABLE_COLUMNS.
        """
        filters = filters or {}
        conditions = []
        params: List[Any] = []

        if filters.get("min_discount") is not None:
            conditions.append("discount_percentage >= ?")
            params.append(filters["min_discount"])
        if filters.get("min_confidence") is not None:
            conditions.append("confidence_score >= ?")
            params.append(filters["min_confidence"])
        if filters.get("min_glitch_probability") is not None:
            conditions.append("pricing_glitch_probability >= ?")
            params.append(filters["min_glitch_probability"])
        if filters.get("site"):
            conditions.append("site = ?")
            params.append(filters["site"])

        column, direction = sort
        if column not in SORTABLE_COLUMNS:
            raise ValueError(f"Unsupported sort column: {column}")
        direction = "ASC" if direction.lower() == "asc" else "DESC"

        query = "SELECT * FROM deals"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += f" ORDER BY {column} {direction} LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_dict(row) for row in cursor.fetchall()]

    def get_top_deals(self, min_discount: int = 50, limit: int = 25) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM deals
                WHERE discount_percentage >= ? AND confidence_score >= 60
                ORDER BY discount_percentage DESC, confidence_score DESC
                LIMIT ?
                """,
                (min_discount, limit),
            )
            return [self._row_to_dict(row) for row in cursor.fetchall()]

    def get_pricing_glitches(self, min_probability: float = 70, limit: int = 25) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM deals
                WHERE pricing_glitch_probability >= ?
                ORDER BY pricing_glitch_probability DESC, confidence_score DESC
                LIMIT ?
                """,
                (min_probability, limit),
            )
            return [self._row_to_dict(row) for row in cursor.fetchall()]

    def get_total_count(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM deals")
            return cursor.fetchone()[0]

    def clean_old_deals(self, days=7):
        """Drops deals not refreshed in the last `days` days."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM deals WHERE updated_at < datetime('now', 'localtime', ?)",
                (f'-{days} days',),
            )
            conn.commit()
            return cursor.rowcount
