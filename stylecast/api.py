"""HTTP API for weather, outfit recommendations and liked items."""

import asyncio
import hmac
import datetime as dt
from typing import List, Optional

import requests
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel

from .app_types import CurrentWeather, ForecastViews
from .classifier import classify
from .config import settings
from .data_sources import WeatherProviderError, build_weather_provider
from .document_store import DocumentStoreError
from .domain import Gender, LikedItem, OutfitRecommendation, Style, StyleItem, TemperatureCategory
from .forecast_service import get_forecast_views
from .identity import StaticIdentityProvider
from .liked_items import (
    DocumentAbsent,
    LikedItemsSync,
    NotAuthenticated,
    RemoteUnavailable,
    SyncError,
    fetch_liked_items,
)
from .recommender import recommend
from .store_manager import get_store
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="stylecast/api")


def require_api_key(x_api_key: str | None = Header(default=None)):
    """
    Validate the X-API-Key header against the static api_key setting.
    """
    # If no key is configured, allow requests (dev/default mode).
    if not settings.api_key:
        return

    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(dependencies=[Depends(require_api_key)])
WEATHER_PROVIDER = build_weather_provider(settings)


class CurrentWeatherResponse(BaseModel):
    """Current observation plus how the location was resolved."""
    city: str
    timestamp_utc: dt.datetime
    temperature: float
    feels_like: Optional[float] = None
    temperature_min: Optional[float] = None
    temperature_max: Optional[float] = None
    humidity: Optional[float] = None
    condition_code: str
    description: str
    used_default_location: bool = False


class HourlyPointResponse(BaseModel):
    timestamp_utc: dt.datetime
    temperature: float
    condition_code: str


class DailySummaryResponse(BaseModel):
    date: dt.date
    label: str
    condition_code: str
    min_temperature: float
    max_temperature: float
    precipitation_probability: int


class ForecastResponse(BaseModel):
    """Hourly and daily forecast views for one location."""
    hourly: List[HourlyPointResponse]
    daily: List[DailySummaryResponse]
    used_default_location: bool = False


class RecommendationsResponse(BaseModel):
    """Outfit suggestions for a temperature and the user's preferences."""
    temperature: float
    category: TemperatureCategory
    category_label: str
    message: str
    recommendations: List[OutfitRecommendation]


class CurrentRecommendationsResponse(BaseModel):
    weather: CurrentWeatherResponse
    recommendations: RecommendationsResponse


class LikedItemsResponse(BaseModel):
    items: List[LikedItem]


class LikedStatusResponse(BaseModel):
    liked: bool


def _weather_response(weather: CurrentWeather, used_default_location: bool) -> CurrentWeatherResponse:
    """Convert a provider observation into the serialized API shape."""
    return CurrentWeatherResponse(
        city=weather.city,
        timestamp_utc=weather.timestamp,
        temperature=weather.temperature,
        feels_like=weather.feels_like,
        temperature_min=weather.temperature_min,
        temperature_max=weather.temperature_max,
        humidity=weather.humidity,
        condition_code=weather.condition_code,
        description=weather.description,
        used_default_location=used_default_location,
    )


def _forecast_response(views: ForecastViews, used_default_location: bool) -> ForecastResponse:
    return ForecastResponse(
        hourly=[
            HourlyPointResponse(timestamp_utc=p.timestamp, temperature=p.temperature, condition_code=p.condition_code)
            for p in views.hourly
        ],
        daily=[
            DailySummaryResponse(
                date=d.calendar_date,
                label=d.formatted_label,
                condition_code=d.representative_condition_code,
                min_temperature=d.min_temperature,
                max_temperature=d.max_temperature,
                precipitation_probability=d.peak_precipitation_probability,
            )
            for d in views.daily
        ],
        used_default_location=used_default_location,
    )


def _recommendations_response(temperature: float, gender: Gender, style: Style) -> RecommendationsResponse:
    category = classify(temperature)
    return RecommendationsResponse(
        temperature=temperature,
        category=category,
        category_label=category.label,
        message=category.message,
        recommendations=recommend(temperature, gender, style),
    )


def _resolve_coordinates(latitude: Optional[float], longitude: Optional[float]) -> tuple[float, float, bool]:
    """Return (lat, lon, used_default); half-specified coordinates are rejected."""
    if latitude is None and longitude is None:
        return settings.default_latitude, settings.default_longitude, True
    if latitude is None or longitude is None:
        raise HTTPException(status_code=400, detail="Both latitude and longitude are required.")
    return latitude, longitude, False


def _fetch_current(latitude: Optional[float], longitude: Optional[float], city: Optional[str]) -> tuple[CurrentWeather, bool]:
    """Fetch current weather by city, coordinates or the default location."""
    try:
        if city:
            logger.info(f"Fetching current weather for city '{city}'")
            return WEATHER_PROVIDER.fetch_current_by_city(city), False
        lat, lon, used_default = _resolve_coordinates(latitude, longitude)
        if used_default:
            logger.info("No location supplied; using default location")
        return WEATHER_PROVIDER.fetch_current(lat, lon), used_default
    except (WeatherProviderError, requests.RequestException) as exc:
        logger.error("Weather provider request failed", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Weather provider error: {exc}")


def _raise_for_sync_error(error: Exception):
    """Map a sync failure onto the matching HTTP status."""
    if isinstance(error, NotAuthenticated):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(error))
    if isinstance(error, DocumentAbsent):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, RemoteUnavailable):
        logger.error("Liked items store unavailable", extra={"error": str(error)})
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    raise error


def _sync_for(user_id: str) -> LikedItemsSync:
    return LikedItemsSync(get_store(), StaticIdentityProvider(user_id))


@router.get("/weather/current", response_model=CurrentWeatherResponse)
def current_weather(
    latitude: Optional[float] = Query(default=None, ge=-90, le=90),
    longitude: Optional[float] = Query(default=None, ge=-180, le=180),
    city: Optional[str] = None,
):
    """Return current weather for a city, coordinates or the default location."""
    weather, used_default = _fetch_current(latitude, longitude, city)
    return _weather_response(weather, used_default)


@router.get("/weather/forecast", response_model=ForecastResponse)
def forecast(
    latitude: Optional[float] = Query(default=None, ge=-90, le=90),
    longitude: Optional[float] = Query(default=None, ge=-180, le=180),
):
    """Return hourly and daily forecast views, with days cut in the configured timezone."""
    lat, lon, used_default = _resolve_coordinates(latitude, longitude)
    try:
        views = get_forecast_views(
            lat,
            lon,
            provider=WEATHER_PROVIDER,
            timezone=settings.forecast_timezone,
            hourly_limit=settings.hourly_window,
            daily_limit=settings.daily_limit,
        )
    except (WeatherProviderError, requests.RequestException) as exc:
        logger.error("Forecast request failed", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Weather provider error: {exc}")
    return _forecast_response(views, used_default)


@router.get("/recommendations", response_model=RecommendationsResponse)
def recommendations(temperature: float, gender: Gender = Gender.MEN, style: Style = Style.STREET):
    """Return outfit suggestions for an explicit temperature."""
    return _recommendations_response(temperature, gender, style)


@router.get("/recommendations/current", response_model=CurrentRecommendationsResponse)
def current_recommendations(
    latitude: Optional[float] = Query(default=None, ge=-90, le=90),
    longitude: Optional[float] = Query(default=None, ge=-180, le=180),
    city: Optional[str] = None,
    gender: Gender = Gender.MEN,
    style: Style = Style.STREET,
):
    """Return current weather together with outfit suggestions for it."""
    weather, used_default = _fetch_current(latitude, longitude, city)
    return CurrentRecommendationsResponse(
        weather=_weather_response(weather, used_default),
        recommendations=_recommendations_response(weather.temperature, gender, style),
    )


@router.get("/users/{user_id}/likes", response_model=LikedItemsResponse)
async def list_likes(user_id: str):
    """Return the user's liked items, newest first."""
    try:
        items = await asyncio.to_thread(fetch_liked_items, get_store(), user_id)
    except DocumentStoreError as exc:
        _raise_for_sync_error(RemoteUnavailable(str(exc)))
    return LikedItemsResponse(items=items)


@router.get("/users/{user_id}/likes/{item_id}", response_model=LikedItem)
async def get_like(user_id: str, item_id: str):
    result = await _sync_for(user_id).get_liked_item(item_id)
    if not result.ok:
        _raise_for_sync_error(result.error)
    return result.value


@router.get("/users/{user_id}/likes/{item_id}/status", response_model=LikedStatusResponse)
async def like_status(user_id: str, item_id: str):
    """Point-in-time liked check for one item."""
    result = await _sync_for(user_id).is_liked(item_id)
    if not result.ok:
        _raise_for_sync_error(result.error)
    return LikedStatusResponse(liked=result.value)


@router.put("/users/{user_id}/likes/{item_id}", response_model=LikedItem)
async def like_item(user_id: str, item_id: str, item: StyleItem):
    """Like an item; liking it again refreshes its timestamp."""
    if item.id != item_id:
        raise HTTPException(status_code=400, detail="Item id in path does not match item name.")
    result = await _sync_for(user_id).like(item)
    if not result.ok:
        _raise_for_sync_error(result.error)
    logger.info("Liked item", extra={"user_id": user_id, "item_id": item_id})
    return result.value


@router.delete("/users/{user_id}/likes/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_item(user_id: str, item_id: str):
    """Unlike an item; unliking an item that is not liked still succeeds."""
    result = await _sync_for(user_id).unlike(item_id)
    if not result.ok:
        _raise_for_sync_error(result.error)
    logger.info("Unliked item", extra={"user_id": user_id, "item_id": item_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.websocket("/users/{user_id}/likes/stream")
async def stream_likes(websocket: WebSocket, user_id: str):
    """Push the full liked list on every store change until the client disconnects."""
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def _on_snapshot(items: List[LikedItem]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, ("snapshot", items))

    def _on_error(error: SyncError) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, ("error", error))

    async def _watch_disconnect() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            queue.put_nowait(("closed", None))

    sync = LikedItemsSync(get_store(), StaticIdentityProvider(user_id), on_snapshot=_on_snapshot, on_error=_on_error)
    watcher = asyncio.create_task(_watch_disconnect())
    try:
        started = await asyncio.to_thread(sync.start)
        if not started.ok:
            logger.warning("Liked items stream failed to start", extra={"user_id": user_id})
            await websocket.send_json({"type": "error", "detail": str(started.error)})
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return
        while True:
            kind, payload = await queue.get()
            if kind == "closed":
                break
            if kind == "error":
                logger.warning("Liked items stream lost its subscription", extra={"user_id": user_id})
                await websocket.send_json({"type": "error", "detail": str(payload)})
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
                break
            await websocket.send_json(
                {"type": "snapshot", "items": [item.model_dump(mode="json") for item in payload]}
            )
    except WebSocketDisconnect:
        logger.debug("Liked items stream client disconnected", extra={"user_id": user_id})
    finally:
        watcher.cancel()
        sync.stop()
