"""Tests for the Neo4j catalog adapter (with a fake driver)."""
import pytest

from regimen.catalog import ExerciseCatalog
from regimen.errors import ConfigError
from regimen.graph import EXERCISE_RECORDS_QUERY, CatalogGraph
from regimen.models import Classification

ROWS = [
    {
        'id': 'push-up',
        'name': 'Push-Up',
        'target_muscles': ['pecs'],
        'secondary_muscles': ['triceps', 'delts', None],
        'body_parts': ['chest'],
        'equipment': ['body weight'],
        'attributes': None,
        'complexity': None,
        'gif_url': '0662',
        'media_refs': ['wrkout', 'push_up', 'gymAnimations', 'pushup-3d'],
    },
    {
        'id': 'dumbbell-curl',
        'name': 'Dumbbell Curl',
        'target_muscles': ['biceps'],
        'secondary_muscles': [],
        'body_parts': ['upper arms'],
        'equipment': ['dumbbell'],
        'attributes': [],
        'complexity': 2,
        'gif_url': None,
        'media_refs': None,
    },
]


class FakeSession:
    def __init__(self, driver):
        self.driver = driver

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def run(self, query, parameters=None):
        self.driver.queries.append(query)
        if query == EXERCISE_RECORDS_QUERY:
            return list(self.driver.rows)
        return [{'count': 3}]


class FakeDriver:
    def __init__(self, rows=(), reachable=True):
        self.rows = rows
        self.reachable = reachable
        self.queries = []
        self.closed = False

    def session(self, database=None):
        return FakeSession(self)

    def verify_connectivity(self):
        if not self.reachable:
            raise OSError("connection refused")

    def close(self):
        self.closed = True


class TestCatalogGraph:
    """Test record mapping and catalog loading."""

    def test_fetch_records(self):
        graph = CatalogGraph(driver=FakeDriver(ROWS))
        records = graph.fetch_exercise_records()
        assert records[0]['media'] == {'exercisedb': '0662', 'wrkout': 'push_up', 'gymAnimations': 'pushup-3d'}
        assert records[0]['secondary_muscles'] == ['triceps', 'delts']
        assert records[1]['media'] == {}

    def test_catalog_from_graph(self):
        catalog = ExerciseCatalog.from_graph(CatalogGraph(driver=FakeDriver(ROWS)))
        assert len(catalog) == 2
        assert catalog.get('push-up').classification == Classification.COMPOUND
        assert catalog.get('dumbbell-curl').complexity == 2
        assert dict(catalog.get('push-up').media_refs)['wrkout'] == 'push_up'

    def test_empty_graph(self):
        with pytest.raises(ConfigError):
            ExerciseCatalog.from_graph(CatalogGraph(driver=FakeDriver()))

    def test_connectivity(self):
        assert CatalogGraph(driver=FakeDriver()).verify_connectivity()
        assert not CatalogGraph(driver=FakeDriver(reachable=False)).verify_connectivity()

    def test_stats(self):
        driver = FakeDriver()
        stats = CatalogGraph(driver=driver).get_stats()
        assert stats == {'exercise_count': 3, 'muscle_count': 3, 'bodypart_count': 3, 'equipment_count': 3}
        assert len(driver.queries) == 4

    def test_context_manager_closes(self):
        driver = FakeDriver()
        with CatalogGraph(driver=driver):
            pass
        assert driver.closed

    def test_password_required(self, monkeypatch):
        monkeypatch.setattr('regimen.graph.load_dotenv', lambda: None)
        monkeypatch.delenv('NEO4J_PASSWORD', raising=False)
        with pytest.raises(ConfigError):
            CatalogGraph()
