"""
Neo4j exercise graph connection and catalog queries.

Internal Codename: CYBERDYNE-CORE
Optional catalog source: exercises, muscles, equipment and media
references stored as a knowledge graph.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from neo4j import Driver, GraphDatabase

from .config import config_dir
from .errors import ConfigError

logger = logging.getLogger(__name__)


EXERCISE_RECORDS_QUERY = """
MATCH (e:Exercise)
OPTIONAL MATCH (e)-[:TARGETS]->(t:Muscle)
OPTIONAL MATCH (e)-[:ASSISTS]->(s:Muscle)
OPTIONAL MATCH (e)-[:TRAINS]->(b:BodyPart)
OPTIONAL MATCH (e)-[:USES]->(eq:Equipment)
RETURN
    e.id as id,
    e.name as name,
    collect(DISTINCT toLower(t.name)) as target_muscles,
    collect(DISTINCT toLower(s.name)) as secondary_muscles,
    collect(DISTINCT toLower(b.name)) as body_parts,
    collect(DISTINCT toLower(eq.name)) as equipment,
    e.safety_attributes as attributes,
    e.complexity as complexity,
    e.gif_url as gif_url,
    e.media_refs as media_refs
ORDER BY e.id
"""


class CatalogGraph:
    """
    Interface to the exercise knowledge graph.

    Internal Codename: CYBERDYNE-CORE
    """

    def __init__(self, config_path: Optional[str] = None, driver: Optional[Driver] = None):
        """
        Initialize connection to Neo4j.

        Args:
            config_path: Path to neo4j.yaml config file. If None, uses default.
            driver: Pre-built driver (skips connection setup)
        """
        load_dotenv()

        if config_path is None:
            config_path = config_dir() / "neo4j.yaml"

        config: Dict[str, Any] = {}
        if Path(config_path).exists():
            with open(config_path) as f:
                config = yaml.safe_load(f) or {}

        self.uri = os.getenv("NEO4J_URI", config.get("uri"))
        self.user = os.getenv("NEO4J_USER", config.get("user"))
        self.password = os.getenv("NEO4J_PASSWORD")
        self.database = os.getenv("NEO4J_DATABASE", config.get("database", "neo4j"))

        if driver is not None:
            self.driver = driver
            return

        if not self.password:
            raise ConfigError("NEO4J_PASSWORD environment variable must be set")

        self.driver: Driver = GraphDatabase.driver(
            self.uri,
            auth=(self.user, self.password)
        )

    def close(self):
        """Close the database connection."""
        if self.driver:
            self.driver.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def verify_connectivity(self) -> bool:
        """
        Verify that we can connect to Neo4j.

        Returns:
            True if connection successful
        """
        try:
            self.driver.verify_connectivity()
            return True
        except Exception as e:
            logger.error(f"Connection failed: {e}")
            return False

    def execute_query(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute a Cypher query and return results.

        Args:
            query: Cypher query string
            parameters: Optional query parameters

        Returns:
            List of result records as dictionaries
        """
        with self.driver.session(database=self.database) as session:
            result = session.run(query, parameters or {})
            return [dict(record) for record in result]

    def fetch_exercise_records(self) -> List[Dict[str, Any]]:
        """
        Fetch every exercise as a catalog record.

        Returns:
            List of records in the same shape as data/exercises.yaml entries
        """
        records = []
        for r in self.execute_query(EXERCISE_RECORDS_QUERY):
            media = {}
            if r.get('gif_url'):
                media['exercisedb'] = r['gif_url']
            # media_refs is stored as alternating provider/locator pairs
            refs = r.get('media_refs') or []
            for provider, locator in zip(refs[::2], refs[1::2]):
                media[provider] = locator

            records.append({
                'id': r['id'],
                'name': r['name'],
                'target_muscles': [m for m in r.get('target_muscles') or [] if m],
                'secondary_muscles': [m for m in r.get('secondary_muscles') or [] if m],
                'body_parts': [b for b in r.get('body_parts') or [] if b],
                'equipment': [e for e in r.get('equipment') or [] if e],
                'attributes': r.get('attributes'),
                'complexity': r.get('complexity'),
                'media': media,
            })

        logger.debug(f"Fetched {len(records)} exercise records from graph")
        return records

    def get_stats(self) -> Dict[str, int]:
        """
        Get basic statistics about the exercise graph.

        Returns:
            Dictionary with node counts
        """
        stats = {}
        for node_type in ("Exercise", "Muscle", "BodyPart", "Equipment"):
            result = self.execute_query(f"MATCH (n:{node_type}) RETURN count(n) as count")
            stats[f"{node_type.lower()}_count"] = result[0]["count"]
        return stats
