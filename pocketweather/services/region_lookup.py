"""Region name <-> administrative code lookup backed by SQLite."""

import csv
import logging
import sqlite3
import threading
from importlib import resources
from pathlib import Path

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

COUNTRY_ROW_NAME = "中华人民共和国"
NULL_MARKERS = {"", "\\N"}


def bundled_dataset() -> Path:
    """Path of the region table shipped with the package."""
    return Path(str(resources.files("pocketweather.data").joinpath("adcodes.csv")))


class SeedReport(BaseModel):
    """Counts from one seeding pass."""

    model_config = ConfigDict(frozen=True)

    inserted: int = 0
    skipped: int = 0


class RegionLookupService:
    """Maps region names to provider administrative codes and back.

    The table is seeded once from a CSV reference dataset
    (``name,adcode,citycode`` with a header line) and read-only afterwards
    unless :meth:`reset` is called.
    """

    def __init__(self, db_path: Path | str = ":memory:", dataset: Path | str | None = None):
        self.db_path = str(db_path)
        self.dataset = Path(dataset) if dataset else bundled_dataset()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._write_lock = threading.Lock()
        self._initialized = False

    @property
    def uses_sample(self) -> bool:
        """True when only the small region table shipped with the package is loaded."""
        return self.dataset == bundled_dataset()

    def _warn_if_sample(self) -> None:
        if self.uses_sample:
            logger.warning(
                "Using the bundled sample region table; most cities will not be found. "
                "Point settings.region_dataset (or --regions) at the full name,adcode,citycode table"
            )

    def _create_table(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS area_table (
                    chinese_name TEXT PRIMARY KEY,
                    adcode TEXT NOT NULL,
                    citycode TEXT
                )
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_area_adcode ON area_table (adcode)"
            )

    def ensure_initialized(self) -> None:
        """Create the table and import the dataset on first use."""
        if self._initialized:
            return
        with self._write_lock:
            if self._initialized:
                return
            self._create_table()
            report = self._import(self.dataset)
            logger.info(
                f"Region table ready: {report.inserted} inserted, {report.skipped} skipped"
            )
            self._warn_if_sample()
            self._initialized = True

    def seed(self, path: Path | str | None = None) -> SeedReport:
        """Import rows from a CSV file, skipping names already present."""
        with self._write_lock:
            self._create_table()
            return self._import(Path(path) if path else self.dataset)

    def _import(self, path: Path) -> SeedReport:
        inserted = skipped = 0
        with open(path, encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f))

        # Single writer transaction for the whole file
        with self._conn:
            for index, row in enumerate(rows):
                if index == 0:
                    continue  # header
                columns = [column.strip() for column in row]
                if not any(columns):
                    continue
                if len(columns) < 2:
                    logger.debug(f"Skipping malformed row {index}: {row}")
                    skipped += 1
                    continue

                name = columns[0]
                if name == COUNTRY_ROW_NAME:
                    skipped += 1
                    continue

                exists = self._conn.execute(
                    "SELECT 1 FROM area_table WHERE chinese_name = ?", (name,)
                ).fetchone()
                if exists:
                    skipped += 1
                    continue

                citycode = columns[2] if len(columns) > 2 and columns[2] not in NULL_MARKERS else None
                self._conn.execute(
                    "INSERT INTO area_table (chinese_name, adcode, citycode) VALUES (?, ?, ?)",
                    (name, columns[1], citycode),
                )
                inserted += 1

        logger.debug(f"Imported {path.name}: {inserted} inserted, {skipped} skipped")
        return SeedReport(inserted=inserted, skipped=skipped)

    def reset(self) -> SeedReport:
        """Drop the table and import the dataset again."""
        with self._write_lock:
            with self._conn:
                self._conn.execute("DROP TABLE IF EXISTS area_table")
            self._create_table()
            report = self._import(self.dataset)
            self._initialized = True
        logger.info(f"Region table reset: {report.inserted} inserted, {report.skipped} skipped")
        self._warn_if_sample()
        return report

    def get_adcode(self, name: str) -> str | None:
        """Administrative code for an exact region name."""
        self.ensure_initialized()
        row = self._conn.execute(
            "SELECT adcode FROM area_table WHERE chinese_name = ?", (name,)
        ).fetchone()
        return row[0] if row else None

    def get_name(self, adcode: str) -> str | None:
        """Region name for an administrative code."""
        self.ensure_initialized()
        row = self._conn.execute(
            "SELECT chinese_name FROM area_table WHERE adcode = ? ORDER BY rowid LIMIT 1",
            (adcode,),
        ).fetchone()
        return row[0] if row else None

    def exact_name(self, name: str) -> str | None:
        """The stored name if the trimmed input matches one exactly."""
        cleaned = name.strip()
        if not cleaned:
            return None
        self.ensure_initialized()
        row = self._conn.execute(
            "SELECT chinese_name FROM area_table WHERE chinese_name = ?", (cleaned,)
        ).fetchone()
        return row[0] if row else None

    def search(self, query: str) -> list[str]:
        """Names containing the query, prefix matches first."""
        cleaned = query.strip()
        if not cleaned:
            return []
        self.ensure_initialized()
        rows = self._conn.execute(
            "SELECT chinese_name FROM area_table WHERE instr(chinese_name, ?) > 0 ORDER BY rowid",
            (cleaned,),
        ).fetchall()
        names = list(dict.fromkeys(row[0] for row in rows))
        prefix_matches = [name for name in names if name.startswith(cleaned)]
        contains_matches = [name for name in names if not name.startswith(cleaned)]
        return prefix_matches + contains_matches

    def close(self) -> None:
        self._conn.close()
