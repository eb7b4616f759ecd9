"""
Command-line interface for adapterd.
"""

import argparse
import signal
import sys
from pathlib import Path

# Ensure logging subsystem is initialised immediately
import adapterd.core.log  # noqa: F401  # side-effect import

from . import __version__
from .core import config
from .core.errors import AdapterError
from .core.log import print_and_log, enable_debug, LOG__GENERAL, LOG__DEBUG


def parse_args(args=None):
    parser = argparse.ArgumentParser(
        description="adapterd - Bluetooth adapter control daemon"
    )
    parser.add_argument("--version", action="version", version=f"adapterd {__version__}")

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode")

    # Daemon mode
    run_parser = subparsers.add_parser("run", help="Serve the adapter interface on the bus")
    run_parser.add_argument("-a", "--adapter", action="append", dest="adapters",
                            help="Adapter to serve (hciN); repeatable, default from config")
    run_parser.add_argument("-c", "--config", help="YAML configuration file")
    run_parser.add_argument("--storage-dir", help="Root of the device record store")
    run_parser.add_argument("--session-bus", action="store_true", help="Use the session bus instead of the system bus")
    run_parser.add_argument("--debug", action="store_true", help="Verbose logging to stderr")

    # Offline helpers
    cls_parser = subparsers.add_parser("decode-class", help="Decode a 24-bit class of device value")
    cls_parser.add_argument("value", help="Class of device, e.g. 0x5a020c")

    subparsers.add_parser("introspect", help="Print the adapter introspection document")

    return parser.parse_args(args)


def _settings_from_args(args) -> config.DaemonSettings:
    settings = config.load_settings(args.config)
    if args.adapters:
        for adapter in args.adapters:
            config.parse_adapter_id(adapter)
        settings.adapters = list(args.adapters)
    if args.storage_dir:
        settings.storage_dir = Path(args.storage_dir)
    if args.session_bus:
        settings.bus = "session"
    if args.debug:
        settings.debug = True
    return settings


def _watch_inquiries(dispatcher, contexts):
    """Release discovery ownership when a controller finishes its inquiry."""
    from gi.repository import GLib

    from adapterd.hci.socket_channel import InquiryMonitor

    monitors = []
    for context in contexts:
        path = context.handle.path
        try:
            monitor = InquiryMonitor(context.dev_id)
        except AdapterError as e:
            print_and_log(f"[-] {context.handle.name}: no inquiry monitor: {e}", LOG__DEBUG)
            continue

        def _on_event(_fd, _condition, monitor=monitor, path=path):
            if monitor.drain():
                dispatcher.inquiry_complete(path)
            return True

        GLib.io_add_watch(monitor.fileno(), GLib.IO_IN, _on_event)
        monitors.append(monitor)
    return monitors


def run_daemon(settings: config.DaemonSettings) -> int:
    import dbus
    import dbus.mainloop.glib
    from gi.repository import GLib

    from adapterd.bt_ref.constants import BLUEZ_SERVICE_NAME
    from adapterd.dbuslayer.bus import AdapterBus, DBusEmitter
    from adapterd.dbuslayer.handlers import build_dispatcher
    from adapterd.dbuslayer.manager import AdapterManager
    from adapterd.hci.socket_channel import HciSocketChannel
    from adapterd.storage.textfile import TextFileStore

    if settings.debug:
        enable_debug()

    # Setup D-Bus mainloop
    dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
    bus = dbus.SessionBus() if settings.bus == "session" else dbus.SystemBus()
    bus.request_name(BLUEZ_SERVICE_NAME)

    dispatcher = build_dispatcher()
    manager = AdapterManager(
        dispatcher,
        HciSocketChannel(),
        TextFileStore(settings.storage_dir),
        DBusEmitter(bus),
        settings.discoverable_timeout,
    )
    contexts = manager.add_adapters(settings.adapter_ids())
    if not contexts:
        print_and_log("[-] No usable adapters", LOG__GENERAL)
        return 1

    adapter_bus = AdapterBus(bus, dispatcher)
    adapter_bus.attach()
    monitors = _watch_inquiries(dispatcher, contexts)

    loop = GLib.MainLoop()

    def _sigint(_sig, _frm):
        print_and_log("[!] Signal received, shutting down", LOG__GENERAL)
        loop.quit()

    signal.signal(signal.SIGINT, _sigint)
    signal.signal(signal.SIGTERM, _sigint)

    try:
        for path in dispatcher.paths():
            print_and_log(f"[*] Serving {path}", LOG__GENERAL)
        loop.run()
    finally:
        adapter_bus.detach()
        for monitor in monitors:
            monitor.close()
        for context in manager.contexts():
            manager.remove_adapter(context.dev_id)
    return 0


def decode_class(value: str) -> int:
    from adapterd.hci.device_class import decode_minor_class, decode_service_classes

    try:
        cls = int(value, 0)
    except ValueError:
        print(f"[!] Invalid class value: {value}", file=sys.stderr)
        return 1

    print(f"Class: 0x{cls & 0xFFFFFF:06x}")
    try:
        major, minor = decode_minor_class(cls)
        print(f"Major: {major}")
        print(f"Minor: {minor}")
    except AdapterError as e:
        print(f"Major/minor: {e}")
    services = decode_service_classes(cls)
    print(f"Services: {', '.join(services) if services else '(none)'}")
    return 0


def main(args=None):
    """Main entry point for adapterd."""
    args = parse_args(args)

    try:
        if args.mode == "run":
            return run_daemon(_settings_from_args(args))

        elif args.mode == "decode-class":
            return decode_class(args.value)

        elif args.mode == "introspect":
            from adapterd.dbuslayer.handlers import ADAPTER_METHODS
            from adapterd.dbuslayer.introspect import introspect_xml

            print(introspect_xml(ADAPTER_METHODS))
            return 0

        else:
            print("[!] No mode given, see --help", file=sys.stderr)
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except config.ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
