import unittest
from unittest.mock import Mock

from fastapi.testclient import TestClient

from app.config.settings import Settings
from app.integrations.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from app.main import app, build_tracker_service


class AppLifecycleTest(unittest.TestCase):
    def test_lifespan_bootstraps_and_shuts_down_tracker(self):
        service = app.state.tracker_service
        original_bootstrap = service.bootstrap
        original_shutdown = service.shutdown

        bootstrap_mock = Mock()
        shutdown_mock = Mock()
        service.bootstrap = bootstrap_mock
        service.shutdown = shutdown_mock

        try:
            with TestClient(app):
                bootstrap_mock.assert_called_once_with()
                shutdown_mock.assert_not_called()

            shutdown_mock.assert_called_once_with()
        finally:
            service.bootstrap = original_bootstrap
            service.shutdown = original_shutdown


class BuildTrackerServiceTest(unittest.TestCase):
    def test_without_store_path_uses_in_memory_store(self):
        service = build_tracker_service(Settings())

        self.assertIsInstance(service.store, InMemoryKeyValueStore)
        self.assertEqual(service.tracked_set.default_ids, ("bitcoin", "ethereum", "solana"))
        self.assertEqual(service.engine.interval_sec, 30.0)

    def test_store_path_selects_json_file_store(self):
        settings = Settings(
            TRACKER_STORE_PATH="/tmp/coin-tracker-test/store.json",
            TRACKER_DEFAULT_COINS=["cardano"],
            TRACKER_HTTP_TIMEOUT_SEC=3,
        )

        service = build_tracker_service(settings)

        self.assertIsInstance(service.store, JsonFileKeyValueStore)
        self.assertEqual(service.tracked_set.default_ids, ("cardano",))
        self.assertEqual(service.price_provider.timeout, 3)


if __name__ == '__main__':
    unittest.main()
