"""Entry point for running the weather client as a module."""

import argparse
import asyncio
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .app import WeatherApp
from .models.config import Config
from .models.card import WeatherCardEntry
from .models.result import ErrorKind, FetchError, FetchResult
from .models.weather import CityWeatherBundle, Coordinate

_logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging with rotation support.

    Args:
        log_level: The logging level (DEBUG, INFO, WARNING, ERROR)
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    # Try to add rotating file handler
    log_dir = Path("logs")
    try:
        log_dir.mkdir(exist_ok=True)
        # Rotate at 10MB, keep 5 backup files
        file_handler = RotatingFileHandler(
            log_dir / "pocketweather.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        handlers.append(file_handler)
    except (PermissionError, OSError):
        pass  # Skip file logging if we can't write

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def format_bundle(bundle: CityWeatherBundle) -> str:
    """Plain-text summary of a weather bundle."""
    lines = []
    live = bundle.live
    if live is not None:
        lines.append(f"{bundle.city} ({live.province})  {live.weather}  {live.temperature}°C")
        lines.append(
            f"  Humidity {live.humidity}%  Wind {live.winddirection} {live.windpower}"
            f"  Reported {live.reporttime}"
        )
    for day in bundle.forecast:
        lines.append(
            f"  {day.date} {day.weekday_name}  {day.dayweather}/{day.nightweather}"
            f"  {day.nighttemp}~{day.daytemp}°C"
        )
    return "\n".join(lines)


def format_card(card: WeatherCardEntry) -> str:
    line = f"{card.city}  {card.weather_condition}  {card.temperature}°C"
    if card.high_temperature and card.low_temperature:
        line += f"  {card.low_temperature}~{card.high_temperature}°C"
    return line


def pin_bundles(app: WeatherApp, bundles: dict[str, CityWeatherBundle]) -> None:
    """Pin every fetched city that is not pinned yet."""
    for city, bundle in bundles.items():
        adcode = app.regions.get_adcode(city)
        if adcode is None:
            continue
        if app.cards.add_card(WeatherCardEntry.from_bundle(bundle, adcode)):
            print(f"Pinned {city}")


def print_region_hint(app: WeatherApp, error: FetchError | None) -> None:
    """Explain a missing city when only the sample region table is loaded."""
    if error is None or not app.regions.uses_sample:
        return
    kinds = [e.kind for e in error.errors.values()] or [error.kind]
    if ErrorKind.CITY_NOT_FOUND in kinds:
        print("Only the sample region table is loaded; pass --regions with the full adcode table")


def print_result(result: FetchResult) -> None:
    if result.ok:
        suffix = " [cached]" if result.from_cache else ""
        print(format_bundle(result.bundle) + suffix)
    else:
        print(f"{result.city or 'Weather'}: {result.error.display_message}")


async def run(args: argparse.Namespace, config: Config) -> int:
    coordinate = None
    if args.lat is not None and args.lon is not None:
        coordinate = Coordinate(longitude=args.lon, latitude=args.lat)

    async with WeatherApp(config, coordinate=coordinate) as app:
        if args.reset_regions:
            report = app.regions.reset()
            print(f"Region table reset: {report.inserted} imported, {report.skipped} skipped")

        if args.search:
            for name in app.coordinator.search_regions(args.search):
                print(name)
            return 0

        if args.cards:
            cards = app.cards.cards
            if not cards:
                print("No pinned cities")
            for card in cards:
                print(format_card(card))
            return 0

        if len(args.cities) > 1:
            batch = await app.coordinator.fetch_many(args.cities)
            for bundle in batch.bundles.values():
                print(format_bundle(bundle))
            if args.pin:
                pin_bundles(app, batch.bundles)
            if batch.error is not None:
                print(batch.error.display_message)
                print_region_hint(app, batch.error)
                return 1
            return 0

        city = args.cities[0] if args.cities else None
        result = await app.coordinator.fetch_weather(city)
        if city is None and app.coordinator.last_error is not None:
            print(f"Location unavailable: {app.coordinator.last_error.display_message}")
        print_result(result)
        print_region_hint(app, result.error or app.coordinator.last_error)
        if args.pin and result.ok:
            pin_bundles(app, {result.city: result.bundle})
        return 0 if result.ok else 1


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Pocket Weather - live conditions and forecast for your location or any city"
    )
    parser.add_argument("cities", nargs="*", help="City or district names (default: current location)")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.json"),
        help="Path to configuration file (default: config.json)",
    )
    parser.add_argument("--search", metavar="QUERY", help="List region names matching QUERY")
    parser.add_argument("--lat", type=float, help="Latitude to use as the current location")
    parser.add_argument("--lon", type=float, help="Longitude to use as the current location")
    parser.add_argument("--cards", action="store_true", help="List pinned cities and exit")
    parser.add_argument("--pin", action="store_true", help="Pin the fetched cities")
    parser.add_argument(
        "--regions",
        type=Path,
        metavar="CSV",
        help="Region table (name,adcode,citycode) to import instead of the bundled sample",
    )
    parser.add_argument(
        "--reset-regions",
        action="store_true",
        help="Drop and re-import the region lookup table",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    args = parser.parse_args()

    # Handle version flag
    if args.version:
        from . import __version__

        print(f"Pocket Weather v{__version__}")
        sys.exit(0)

    config = Config.load_or_default(args.config)
    if args.regions:
        config.settings.region_dataset = args.regions

    # Setup logging
    log_level = "DEBUG" if args.verbose else config.settings.log_level
    setup_logging(log_level)

    if not args.config.exists():
        _logger.info(f"Config file not found: {args.config}, using defaults")

    # SIGTERM exits like Ctrl+C so the app context closes cleanly
    signal.signal(signal.SIGTERM, signal.default_int_handler)

    try:
        exit_code = asyncio.run(run(args, config))
    except KeyboardInterrupt:
        _logger.info("Interrupted, shutting down")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
