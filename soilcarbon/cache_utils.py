import sqlite3
import json
import hashlib
from datetime import datetime, timedelta


class StatsCache:
    """
    Stores statistics fetched from Earth Engine (histograms, climate tables)
    so repeated runs over the same AOI skip the getInfo() round trip.
    """

    def __init__(self, path):
        self.conn = sqlite3.connect(path)
        self.create_table()

    def create_table(self):
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS results (
                    key TEXT PRIMARY KEY,
                    data TEXT,
                    timestamp DATETIME
                )
            """)

    def _generate_key(self, aoi, layer, params):
        # aoi is the AOI source string, params must be JSON serializable
        raw_str = f"{aoi}_{layer}_{json.dumps(params, sort_keys=True, default=str)}"
        return hashlib.md5(raw_str.encode('utf-8')).hexdigest()

    def get(self, aoi, layer, params=None):
        key = self._generate_key(aoi, layer, params)
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM results WHERE key = ?", (key,))
        row = cursor.fetchone()

        if row:
            try:
                return json.loads(row[0])
            except ValueError:
                return None
        return None

    def set(self, aoi, layer, data, params=None):
        key = self._generate_key(aoi, layer, params)
        try:
            data_json = json.dumps(data)
        except TypeError as e:
            print(f"Cache Set Error: {e}")
            return False

        timestamp = datetime.now().isoformat()
        with self.conn:
            self.conn.execute("""
                INSERT OR REPLACE INTO results (key, data, timestamp)
                VALUES (?, ?, ?)
            """, (key, data_json, timestamp))
        return True

    def clear_old(self, days=7):
        cutoff = (datetime.now() - timedelta(days=days)).isoformat()
        with self.conn:
            cursor = self.conn.execute("DELETE FROM results WHERE timestamp < ?", (cutoff,))
        return cursor.rowcount

    def close(self):
        self.conn.close()
