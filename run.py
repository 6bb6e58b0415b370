"""
CMS Link Client Entry Point
Command-line front end: devices, vehicles, alarms, alarm watch, stream links
"""
import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Dict, List, Optional, Tuple

from logging_config import setup_logging_from_config
from config import Config
from cms_infrastructure import HTTPTransport, ServerConfig, get_server_config
from cms_client import (
    AlarmPoller,
    AlarmQuery,
    AlarmSelection,
    CMSError,
    CMSSessionClient,
    HierarchyCycleError,
    HLSLinkOptions,
    LinkBuilder,
    RTMPLinkOptions,
    RTSPLinkOptions,
    Session,
    hls_video_tag,
)
from cms_client.reports import (
    device_links_filename,
    format_alarm_log_entry,
    format_alarm_report,
    format_auto_refresh_report,
    format_device_links,
    format_vehicle_report,
)

logger = logging.getLogger(__name__)

COORD_CHOICES = {'0': 0, 'wgs84': 0, '1': 1, 'google': 1, '2': 2, 'baidu': 2}


def _credentials(args: argparse.Namespace) -> Tuple[str, str]:
    account = (args.account or Config.get('credentials.account') or '').strip()
    password = (args.password or Config.get('credentials.password') or '').strip()
    if not account or not password:
        raise SystemExit("Please supply both account and password "
                         "(--account/--password, config.json or CMS_ACCOUNT/CMS_PASSWORD)")
    return account, password


def _coord_system(args: argparse.Namespace) -> int:
    if args.coord is not None:
        return COORD_CHOICES[args.coord]
    return Config.get_int('polling.coord_system', 0)


def _warn_if_insecure(session: Session):
    if session.insecure:
        print("WARNING: server certificate could not be verified; "
              "connection fell back to unverified TLS", file=sys.stderr)


async def _login(client: CMSSessionClient, args: argparse.Namespace) -> Tuple[Session, str, str]:
    account, password = _credentials(args)
    session = await client.login(account, password)
    _warn_if_insecure(session)
    return session, account, password


# =============================================================================
# Commands
# =============================================================================

async def cmd_devices(client: CMSSessionClient, links: LinkBuilder, args) -> int:
    session, account, password = await _login(client, args)
    response = await client.list_devices(session)

    all_links: Dict[str, Dict[str, str]] = {}
    for device in response.onlines:
        all_links[device.label] = links.player_links(
            session.jsession, device.did, device.vid, account, password
        )

    report = format_device_links(all_links)
    print(report, end='')

    if args.save:
        path = os.path.join(args.save_dir, device_links_filename(account, len(all_links)))
        with open(path, 'w', encoding='utf-8') as f:
            f.write(report)
        print(f"Saved links to {path}")
    return 0


async def cmd_vehicles(client: CMSSessionClient, links: LinkBuilder, args) -> int:
    session, _, _ = await _login(client, args)
    response = await client.get_vehicle_info(session)
    try:
        print(format_vehicle_report(response.companys, response.vehicles, args.root), end='')
    except HierarchyCycleError as e:
        logger.error(str(e))
        return 1
    return 0


async def cmd_alarms(client: CMSSessionClient, links: LinkBuilder, args) -> int:
    session, _, _ = await _login(client, args)
    response = await client.get_alarms(session, args.device, _coord_system(args))
    print(format_alarm_report(response), end='')

    # '' disables the alarm log
    log_file = args.log_file if args.log_file is not None else Config.get('polling.alarm_log_file', '')
    if log_file and response.alarmlist:
        with open(log_file, 'a', encoding='utf-8') as f:
            f.write(format_alarm_log_entry(response.alarmlist))
        logger.info(f"Appended {len(response.alarmlist)} alarms to {log_file}")
    return 0


async def cmd_watch(client: CMSSessionClient, links: LinkBuilder, args) -> int:
    session, _, _ = await _login(client, args)

    selection = AlarmSelection(AlarmQuery(
        session=session,
        device_id=args.device,
        coord_system=_coord_system(args),
    ))

    def print_alarms(response):
        print(format_auto_refresh_report(response), end='', flush=True)

    interval = args.interval or Config.get_float('polling.alarm_interval_seconds', 5.0)
    poller = AlarmPoller(client, selection, print_alarms, interval_seconds=interval)

    stop_event = asyncio.Event()
    _setup_signal_handlers(asyncio.get_running_loop(), stop_event)

    poller.start()
    print(f"Auto-refreshing alarms every {interval:g} seconds (Ctrl+C to stop)", file=sys.stderr)
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=args.duration)
    except asyncio.TimeoutError:
        pass
    finally:
        poller.stop()
        await poller.wait_closed()
        stats = poller.get_stats()
        logger.info(f"Final stats: ticks={stats['ticks']}, deliveries={stats['deliveries']}, "
                    f"suppressed_errors={stats['suppressed_errors']}")
    return 0


async def cmd_link(client: CMSSessionClient, links: LinkBuilder, args) -> int:
    session, _, _ = await _login(client, args)
    common = dict(
        server_host=args.host or '',
        server_port=args.port,
        jsession=session.jsession,
        dev_idno=args.device,
        channel=args.channel,
        stream=args.stream,
    )

    if args.protocol == 'rtsp':
        print(links.rtsp_link(RTSPLinkOptions(av_type=args.av_type, **common)))
    elif args.protocol == 'rtmp':
        print(links.rtmp_link(RTMPLinkOptions(av_type=args.av_type, **common)))
    else:
        url = links.hls_link(HLSLinkOptions(request_type=args.request_type, **common))
        print(url)
        if args.html:
            print(hls_video_tag(url))
    return 0


def cmd_init_config(args) -> int:
    try:
        path = Config.write_default(args.path, overwrite=args.force)
    except FileExistsError as e:
        print(str(e), file=sys.stderr)
        return 1
    print(f"Wrote {path}")
    return 0


COMMANDS = {
    'devices': cmd_devices,
    'vehicles': cmd_vehicles,
    'alarms': cmd_alarms,
    'watch': cmd_watch,
    'link': cmd_link,
}


# =============================================================================
# Plumbing
# =============================================================================

def _setup_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event):
    """Setup signal handlers for graceful shutdown"""

    def _handle_shutdown(sig=None, frame=None):
        sig_name = signal.Signals(sig).name if sig else "UNKNOWN"
        logger.info(f"Received {sig_name} signal, stopping...")
        loop.call_soon_threadsafe(stop_event.set)

    if sys.platform == 'win32':
        # SIGTERM is not available on Windows
        signal.signal(signal.SIGINT, _handle_shutdown)
    else:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except (NotImplementedError, ValueError) as e:
                signal.signal(sig, _handle_shutdown)
                logger.debug(f"Registered sync handler for {sig.name}: {e}")


async def main(args: argparse.Namespace, server: Optional[ServerConfig] = None) -> int:
    """Run one command against the configured CMS server"""
    server = server or get_server_config()
    logger.debug(f"CMS server: {server.server_url}")

    async with HTTPTransport() as transport:
        client = CMSSessionClient(server, transport)
        links = LinkBuilder(server)
        try:
            return await COMMANDS[args.command](client, links, args)
        except CMSError as e:
            logger.error(f"{args.command} failed: {e}")
            return 1
        except ValueError as e:
            logger.error(f"Invalid input: {e}")
            return 2
        finally:
            stats = transport.get_stats()
            if stats['insecure_responses']:
                logger.warning(f"{stats['insecure_responses']} response(s) used unverified TLS")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cms-link',
        description="CMS video/GPS platform client: devices, alarms and live stream links."
    )
    parser.add_argument('--account', default=None, help="CMS account (default: config/CMS_ACCOUNT)")
    parser.add_argument('--password', default=None, help="CMS password (default: config/CMS_PASSWORD)")
    sub = parser.add_subparsers(dest='command', required=True)

    devices = sub.add_parser('devices', help="List online devices with web player / live API links")
    devices.add_argument('--save', action='store_true',
                         help="Also write the links to {account}-{N}dev-{YYYY-MM-DD}.txt")
    devices.add_argument('--save-dir', default='.', help="Directory for --save (default: current)")

    vehicles = sub.add_parser('vehicles', help="Company hierarchy and vehicle details")
    vehicles.add_argument('--root', type=int, default=2, help="Root company parent id (default 2)")

    for name, help_text in (('alarms', "Fetch alarms once"), ('watch', "Auto-refresh alarms")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument('--device', default='', help="DevIDNO (default: all devices)")
        p.add_argument('--coord', choices=sorted(COORD_CHOICES), default=None,
                       help="Coordinate system: 0/wgs84, 1/google, 2/baidu (default: polling.coord_system)")
        if name == 'alarms':
            p.add_argument('--log-file', default=None,
                           help="Append alarms to this file, '' to disable (default: polling.alarm_log_file)")
        else:
            p.add_argument('--interval', type=float, default=None,
                           help="Seconds between polls (default: polling.alarm_interval_seconds)")
            p.add_argument('--duration', type=float, default=None,
                           help="Stop after this many seconds (default: until Ctrl+C)")

    link = sub.add_parser('link', help="Build an RTSP, RTMP or HLS live stream URL")
    link.add_argument('protocol', choices=['rtsp', 'rtmp', 'hls'])
    link.add_argument('--device', required=True, help="DevIDNO")
    link.add_argument('--channel', type=int, default=0, help="Channel (starts at 0)")
    link.add_argument('--stream', type=int, choices=[0, 1], default=0, help="0=main, 1=sub")
    link.add_argument('--host', default=None, help="Media server host (default: server_url host)")
    link.add_argument('--port', type=int, default=0, help="Media server port (default: from config)")
    link.add_argument('--av-type', type=int, choices=[1, 2], default=1, help="1=live video, 2=audio listen")
    link.add_argument('--request-type', type=int, default=1, help="HLS request type (1=real-time)")
    link.add_argument('--html', action='store_true', help="Also print an HTML <video> tag (HLS)")

    init = sub.add_parser('init-config', help="Write a default config.json")
    init.add_argument('--path', default=None, help="Target file (default: config.json)")
    init.add_argument('--force', action='store_true', help="Overwrite an existing file")

    return parser


def run(argv: Optional[List[str]] = None):
    """Entry point function"""
    args = build_parser().parse_args(argv)

    if args.command == 'init-config':
        sys.exit(cmd_init_config(args))

    setup_logging_from_config()
    try:
        if sys.platform == 'win32':
            asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
        sys.exit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except ValueError as e:
        # Configuration errors
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    run()
