import unittest

from fastapi.testclient import TestClient

from app.errors import NetworkUnavailableError, PersistenceWriteError, RemoteApiError
from app.integrations.kv_store import InMemoryKeyValueStore
from app.main import app
from app.services.tracker import CoinTrackerService


class StubCoinGecko:
    def __init__(self) -> None:
        self.calls = 0
        self.error: Exception | None = None

    def get_markets(self, coin_ids):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [
            {
                "id": c,
                "symbol": c[:3].upper(),
                "display_name": c.title(),
                "price": 1234.5,
                "change_24h_pct": -0.4,
                "market_cap": 99.0,
                "image_url": f"https://img.test/{c}.png",
            }
            for c in coin_ids
        ]

    def search(self, query):
        if query == "boom":
            raise NetworkUnavailableError("offline")
        return [
            {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC", "thumb": ""},
            {"id": "dogecoin", "name": "Dogecoin", "symbol": "DOGE", "thumb": "https://img.test/doge.png"},
        ]

    def get_coin_details(self, coin_id):
        if coin_id == "missing":
            raise RemoteApiError("http 404", status_code=404)
        return {"id": coin_id, "symbol": "BTC", "name": "Bitcoin", "image_url": "", "price": 64000.0}

    def ping(self):
        return True


class ReadOnlyStore(InMemoryKeyValueStore):
    read_only = False

    def set(self, key, value):
        if self.read_only:
            raise PersistenceWriteError("read-only")
        super().set(key, value)


class TrackerApiTest(unittest.TestCase):
    def setUp(self):
        self.original_service = app.state.tracker_service
        self.store = ReadOnlyStore()
        self.provider = StubCoinGecko()
        self.service = CoinTrackerService(
            store=self.store,
            price_provider=self.provider,
            default_ids=["bitcoin", "ethereum"],
            refresh_interval_sec=3600,
        )
        self.service.tracked_set.load()
        self.service.preference_store.load()
        app.state.tracker_service = self.service
        self.client = TestClient(app)

    def tearDown(self):
        self.service.shutdown()
        app.state.tracker_service = self.original_service

    def test_refresh_then_state(self):
        r = self.client.post('/v1/sync/refresh')
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(sorted(body['snapshots']), ['bitcoin', 'ethereum'])
        self.assertEqual(body['phase'], 'READY')
        self.assertIsNone(body['last_error'])

        state = self.client.get('/v1/sync/state').json()
        self.assertEqual(state['snapshots']['bitcoin']['price'], 1234.5)
        self.assertEqual(state['last_updated'], 'Just now')
        self.assertFalse(state['stale'])

    def test_failed_refresh_reports_error_kind_and_keeps_data(self):
        self.client.post('/v1/sync/refresh')
        self.provider.error = NetworkUnavailableError("offline")

        body = self.client.post('/v1/sync/refresh').json()

        self.assertEqual(body['last_error'], 'NETWORK_UNAVAILABLE')
        self.assertEqual(len(body['snapshots']), 2)
        self.assertFalse(body['refreshing'])

    def test_add_and_remove_tracked(self):
        r = self.client.post('/v1/tracked', json={'id': 'solana'})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {'tracked_ids': ['bitcoin', 'ethereum', 'solana']})

        r = self.client.delete('/v1/tracked/ethereum')
        self.assertEqual(r.json(), {'tracked_ids': ['bitcoin', 'solana']})
        self.assertEqual(self.client.get('/v1/tracked').json(), {'tracked_ids': ['bitcoin', 'solana']})

    def test_blank_coin_id_is_rejected(self):
        r = self.client.post('/v1/tracked', json={'id': '  '})

        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json(), {'detail': 'INVALID_COIN_ID'})

    def test_persistence_failure_surfaces_as_503(self):
        self.store.read_only = True

        r = self.client.post('/v1/tracked', json={'id': 'solana'})
        self.assertEqual(r.status_code, 503)
        self.assertEqual(r.json(), {'detail': 'PERSISTENCE_WRITE_ERROR'})

        r = self.client.post('/v1/tracked/reset')
        self.assertEqual(r.status_code, 503)
        self.assertEqual(self.client.get('/v1/tracked').json()['tracked_ids'], ['bitcoin', 'ethereum'])

    def test_preferences_round_trip(self):
        r = self.client.get('/v1/preferences')
        self.assertEqual(r.json()['theme'], 'light')
        self.assertTrue(r.json()['ads_enabled'])

        r = self.client.put('/v1/preferences/theme', json={'theme': 'dark'})
        self.assertEqual(r.json()['theme'], 'dark')
        self.assertEqual(r.json()['palette']['primary'], '#BB86FC')
        self.assertIsNone(r.json()['persist_error'])

        r = self.client.post('/v1/preferences/ads/toggle')
        self.assertFalse(r.json()['ads_enabled'])

        r = self.client.put('/v1/preferences/ads', json={'ads_enabled': True})
        self.assertTrue(r.json()['ads_enabled'])

        r = self.client.post('/v1/preferences/theme/toggle')
        self.assertEqual(r.json()['theme'], 'light')

    def test_invalid_theme_is_422(self):
        r = self.client.put('/v1/preferences/theme', json={'theme': 'sepia'})

        self.assertEqual(r.status_code, 422)

    def test_preference_write_failure_keeps_value(self):
        self.store.read_only = True

        r = self.client.put('/v1/preferences/theme', json={'theme': 'dark'})

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()['theme'], 'dark')
        self.assertEqual(r.json()['persist_error'], 'PERSISTENCE_WRITE_ERROR')

    def test_search_filters_tracked_coins(self):
        body = self.client.get('/v1/search', params={'query': 'coin'}).json()

        self.assertEqual([c['id'] for c in body['candidates']], ['dogecoin'])
        self.assertIsNone(body['error'])

    def test_search_error_is_reported_in_body(self):
        r = self.client.get('/v1/search', params={'query': 'boom'})

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()['candidates'], [])
        self.assertEqual(r.json()['error'], 'SEARCH_ERROR')

    def test_coin_details(self):
        r = self.client.get('/v1/coins/bitcoin')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()['price'], 64000.0)

        r = self.client.get('/v1/coins/missing')
        self.assertEqual(r.status_code, 502)
        self.assertEqual(r.json(), {'detail': 'REMOTE_API_ERROR'})

    def test_provider_health_and_metrics(self):
        self.assertEqual(self.client.get('/v1/provider/health').json(), {'ok': True})

        self.client.post('/v1/sync/refresh')
        metrics = self.client.get('/v1/metrics/sync').json()

        self.assertEqual(metrics['cycles'], 1)
        self.assertEqual(metrics['failures'], 0)
        self.assertEqual(metrics['cached_coins'], 2)
        self.assertFalse(metrics['in_flight'])


if __name__ == '__main__':
    unittest.main()
