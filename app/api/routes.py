from fastapi import APIRouter, HTTPException, Request

from app.errors import PersistenceWriteError, TrackerError
from app.schemas.coin import TrackCoinRequest
from app.schemas.preferences import AdsUpdate, ThemeUpdate

router = APIRouter()


def _tracker(request: Request):
    return request.app.state.tracker_service


def _mutate_tracked(fn, coin_id: str) -> dict:
    try:
        ids = fn(coin_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='INVALID_COIN_ID') from exc
    except PersistenceWriteError as exc:
        raise HTTPException(status_code=503, detail=exc.kind.value) from exc
    return {'tracked_ids': ids}


@router.get('/sync/state')
def get_sync_state(request: Request):
    return _tracker(request).state().model_dump(mode='json')


@router.post('/sync/refresh')
def refresh_now(request: Request):
    return _tracker(request).refresh_now().model_dump(mode='json')


@router.get('/metrics/sync')
def sync_metrics(request: Request):
    return _tracker(request).engine.metrics()


@router.get('/tracked')
def get_tracked(request: Request):
    return {'tracked_ids': _tracker(request).tracked()}


@router.post('/tracked')
def add_tracked(req: TrackCoinRequest, request: Request):
    return _mutate_tracked(_tracker(request).add_tracked, req.id)


@router.delete('/tracked/{coin_id}')
def remove_tracked(coin_id: str, request: Request):
    return _mutate_tracked(_tracker(request).remove_tracked, coin_id)


@router.post('/tracked/reset')
def reset_to_defaults(request: Request):
    try:
        return _tracker(request).reset_to_defaults()
    except PersistenceWriteError as exc:
        raise HTTPException(status_code=503, detail=exc.kind.value) from exc


@router.get('/preferences')
def get_preferences(request: Request):
    return _tracker(request).preferences().model_dump()


@router.put('/preferences/theme')
def set_theme(req: ThemeUpdate, request: Request):
    return _tracker(request).set_theme(req.theme).model_dump()


@router.post('/preferences/theme/toggle')
def toggle_theme(request: Request):
    return _tracker(request).toggle_theme().model_dump()


@router.put('/preferences/ads')
def set_ads_enabled(req: AdsUpdate, request: Request):
    return _tracker(request).set_ads_enabled(req.ads_enabled).model_dump()


@router.post('/preferences/ads/toggle')
def toggle_ads(request: Request):
    return _tracker(request).toggle_ads().model_dump()


@router.get('/search')
def search(request: Request, query: str = ''):
    return _tracker(request).search(query).model_dump()


@router.get('/coins/{coin_id}')
def get_coin_details(coin_id: str, request: Request):
    try:
        return _tracker(request).coin_details(coin_id).model_dump()
    except TrackerError as exc:
        raise HTTPException(status_code=502, detail=exc.kind.value) from exc


@router.get('/provider/health')
def provider_health(request: Request):
    return {'ok': _tracker(request).provider_healthy()}
