"""Command line entry point for the dashboard core.

Examples:
    finboard probe https://api.coinbase.com/v2/exchange-rates?currency=BTC
    finboard create "Crypto" --theme light
    finboard add card "BTC rates" https://api.coinbase.com/v2/exchange-rates?currency=BTC --interval 30
    finboard update widget-1a2b3c4d5e6f --interval 60 --field data.rates.USD
    finboard export --out exports/
    finboard run --duration 120
"""

import argparse
import json
import signal
import sys
import threading
from typing import List, Optional

from config.config import (
    DEFAULT_REFRESH_INTERVAL_SEC,
    DEFAULT_THEME,
    THEMES,
    WIDGET_TYPES,
    CHART_TYPES,
    DEFAULT_CHART_TYPE,
    DEFAULT_CHART_COLOR,
)
from config.models import AppConfig
from data_binding.errors import ParseError, ValidationError
from data_binding.probe import API_PRESETS, APIProbe
from service.runtime_glue import DashboardRuntime
from service.widget_feed import WidgetState
from storage.dashboard_store import DashboardStore
from storage.import_export import read_import, write_export
from storage.repository import create_repository
from storage.widgets import build_chart_config, build_widget, validate_refresh_interval
from utils.datetime import ms_to_iso
from utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="finboard", description="Dashboard widget store and refresh runtime")
    parser.add_argument("--config", help="YAML config file")

    sub = parser.add_subparsers(dest="command", required=True)

    probe = sub.add_parser("probe", help="Test a data source URL and list its fields")
    probe.add_argument("url")
    probe.add_argument("--api-key")

    sub.add_parser("presets", help="List sample data sources")
    sub.add_parser("dashboards", help="List dashboards")
    sub.add_parser("widgets", help="List widgets of the current dashboard")

    create = sub.add_parser("create", help="Create a dashboard and switch to it")
    create.add_argument("name")
    create.add_argument("--theme", choices=THEMES, default=DEFAULT_THEME)

    switch = sub.add_parser("switch", help="Switch the current dashboard")
    switch.add_argument("dashboard_id")

    delete = sub.add_parser("delete", help="Delete a dashboard")
    delete.add_argument("dashboard_id")

    theme = sub.add_parser("theme", help="Set a dashboard's theme")
    theme.add_argument("dashboard_id")
    theme.add_argument("theme", choices=THEMES)

    add = sub.add_parser("add", help="Add a widget to the current dashboard")
    add.add_argument("type", choices=WIDGET_TYPES)
    add.add_argument("title")
    add.add_argument("url")
    add.add_argument("--interval", type=int, default=DEFAULT_REFRESH_INTERVAL_SEC)
    add.add_argument("--field", action="append", dest="fields", default=[])
    add.add_argument("--api-key")
    add.add_argument("--chart-type", choices=CHART_TYPES, default=DEFAULT_CHART_TYPE)
    add.add_argument("--x-field")
    add.add_argument("--y-field")
    add.add_argument("--color", default=DEFAULT_CHART_COLOR)

    update = sub.add_parser("update", help="Change settings of a widget; omitted options stay as they are")
    update.add_argument("widget_id")
    update.add_argument("--title")
    update.add_argument("--url")
    update.add_argument("--interval", type=int)
    update.add_argument("--field", action="append", dest="fields",
                        help="Replaces the selected fields; repeat for several")
    update.add_argument("--clear-fields", action="store_true", help="Show the default field subset")
    update.add_argument("--api-key")
    update.add_argument("--chart-type", choices=CHART_TYPES)
    update.add_argument("--x-field")
    update.add_argument("--y-field")
    update.add_argument("--color")

    remove = sub.add_parser("remove", help="Remove a widget")
    remove.add_argument("widget_id")

    move = sub.add_parser("move", help="Move a widget to another widget's place")
    move.add_argument("widget_id")
    move.add_argument("target_id")

    export = sub.add_parser("export", help="Export the current widgets")
    export.add_argument("--out", help="Directory to write a timestamped export file to")

    imp = sub.add_parser("import", help="Replace the current widgets from an export file")
    imp.add_argument("path")

    sub.add_parser("clear", help="Delete all widgets of the current dashboard")

    run = sub.add_parser("run", help="Poll every widget of the current dashboard")
    run.add_argument("--duration", type=float, help="Stop after this many seconds")

    return parser


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _open_store(config: AppConfig) -> DashboardStore:
    return DashboardStore(create_repository(config.storage), key=config.storage.key)


def _print_update(widget_id: str, state: WidgetState) -> None:
    if state.error:
        print(f"[{widget_id}] #{state.sequence} error: {state.error}")
    else:
        print(f"[{widget_id}] #{state.sequence} {len(state.fields)} fields")


def run_runtime(config: AppConfig, duration: Optional[float]) -> int:
    runtime = DashboardRuntime.from_config(config, on_update=_print_update)
    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    runtime.start()
    try:
        stop_event.wait(timeout=duration)
    finally:
        runtime.stop(wait=False)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = AppConfig.from_yaml(args.config)
    setup_logging(config.log_level, config.log_file)

    if args.command == "probe":
        result = APIProbe(config.probe).test(args.url, args.api_key)
        _print_json(result.to_dict() if not result.success else {"success": True, "fields": result.fields})
        return 0 if result.success else 1

    if args.command == "presets":
        for preset in API_PRESETS:
            key_note = " (API key required)" if preset.requires_key else ""
            print(f"{preset.name}{key_note}\n  {preset.url}\n  {preset.description}")
        return 0

    if args.command == "run":
        return run_runtime(config, args.duration)

    store = _open_store(config)
    try:
        return _run_store_command(store, args)
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


def _run_store_command(store: DashboardStore, args) -> int:
    if args.command == "dashboards":
        current = store.current_dashboard_id
        for dashboard in store.dashboards:
            marker = "*" if dashboard["id"] == current else " "
            print(f"{marker} {dashboard['id']}  {dashboard['name']}  ({dashboard['theme']}, "
                  f"{len(dashboard['widgets'])} widgets)  updated {ms_to_iso(dashboard['updatedAt'])}")
        return 0

    if args.command == "widgets":
        _print_json(store.widgets)
        return 0

    if args.command == "create":
        dashboard = store.create_dashboard(args.name, args.theme)
        print(dashboard["id"])
        return 0

    if args.command == "switch":
        return 0 if store.switch_dashboard(args.dashboard_id) else 1

    if args.command == "delete":
        return 0 if store.delete_dashboard(args.dashboard_id) else 1

    if args.command == "theme":
        return 0 if store.update_dashboard_theme(args.dashboard_id, args.theme) else 1

    if args.command == "add":
        chart_config = None
        if args.type == "chart" and args.x_field and args.y_field:
            chart_config = build_chart_config(args.x_field, args.y_field, args.chart_type, args.color)
        widget = build_widget(
            args.type,
            args.title,
            args.url,
            refresh_interval=args.interval,
            selected_fields=args.fields,
            api_key=args.api_key,
            chart_config=chart_config,
        )
        print(store.add_widget(widget)["id"])
        return 0

    if args.command == "update":
        widget = store.get_widget(args.widget_id)
        if widget is None:
            print(f"error: no widget {args.widget_id}", file=sys.stderr)
            return 1
        updated = store.update_widget(args.widget_id, _widget_changes(widget, args))
        return 0 if updated is not None else 1

    if args.command == "remove":
        return 0 if store.remove_widget(args.widget_id) else 1

    if args.command == "move":
        return 0 if store.move_widget(args.widget_id, args.target_id) else 1

    if args.command == "export":
        text = store.export_dashboard()
        if args.out:
            print(write_export(text, args.out))
        else:
            print(text)
        return 0

    if args.command == "import":
        try:
            text = read_import(args.path)
        except (OSError, ParseError) as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        if store.import_dashboard(text):
            print("Dashboard imported successfully")
            return 0
        print("Import failed: invalid template format", file=sys.stderr)
        return 1

    if args.command == "clear":
        store.clear_widgets()
        return 0

    raise ValueError(f"Unhandled command: {args.command}")


def _widget_changes(widget, args) -> dict:
    """Partial update from the `update` options that were given.

    Raises:
        ValidationError: an option value would be rejected when adding a widget
    """
    changes = {}
    if args.title is not None:
        if not args.title.strip():
            raise ValidationError("Widget title is required")
        changes["title"] = args.title
    if args.url is not None:
        if not args.url.strip():
            raise ValidationError("Widget API URL is required")
        changes["apiUrl"] = args.url
    if args.interval is not None:
        changes["refreshInterval"] = validate_refresh_interval(args.interval)
    if args.clear_fields:
        changes["selectedFields"] = []
    elif args.fields:
        changes["selectedFields"] = list(args.fields)
    if args.api_key is not None:
        changes["apiKey"] = args.api_key

    if any(v is not None for v in (args.x_field, args.y_field, args.chart_type, args.color)):
        if widget.get("type") != "chart":
            raise ValidationError("Chart configuration is only valid for chart widgets")
        current = widget.get("chartConfig") or {}
        x_field = args.x_field or current.get("xAxisField")
        y_field = args.y_field or current.get("yAxisField")
        if not x_field or not y_field:
            raise ValidationError("Chart needs both an x-axis and a y-axis field")
        changes["chartConfig"] = build_chart_config(
            x_field,
            y_field,
            args.chart_type or current.get("chartType", DEFAULT_CHART_TYPE),
            args.color or current.get("color", DEFAULT_CHART_COLOR),
        )
    return changes


if __name__ == "__main__":
    sys.exit(main())
