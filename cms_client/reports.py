"""
Plain-text reports for CLI output and alarm logs
"""
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from cms_infrastructure.input_validator import clean_display_text
from .hierarchy import ROOT_COMPANY_ID, render_company_tree
from .models import Alarm, AlarmResponse, Company, Vehicle

SEPARATOR = '-' * 60


def format_alarm(alarm: Alarm, with_location: bool = True) -> str:
    lines = [
        f"Device: {alarm.dev_idno}",
        f"Time: {alarm.time}",
        f"Type: {alarm.type}",
        f"Description: {clean_display_text(alarm.desc)}",
    ]
    if with_location:
        if alarm.gps.has_position:
            lines.append(f"Location: {alarm.gps.latitude:.6f}, {alarm.gps.longitude:.6f}")
            lines.append(f"Mapped Location: {alarm.gps.mlat}, {alarm.gps.mlng}")
            lines.append(f"Speed: {alarm.gps.speed_kmh:.1f} km/h")
        lines.append(f"Status: {'Processed' if alarm.processed else 'Unprocessed'}")
    lines.append(SEPARATOR)
    return '\n'.join(lines) + '\n'


def format_alarm_report(response: AlarmResponse, title: str = 'DEVICE ALARMS',
                        with_location: bool = True) -> str:
    """Alarm list in the layout of the alarm view / auto refresh output."""
    parts = [f"=== {title} ===\n"]
    if response.insecure:
        parts.append("WARNING: response received over an unverified TLS connection\n")

    if not response.alarmlist:
        parts.append("No alarms found for this device\n")
        return ''.join(parts)

    parts.append(f"Found {len(response.alarmlist)} alarms\n\n")
    parts.extend(format_alarm(alarm, with_location) for alarm in response.alarmlist)
    return ''.join(parts)


def format_auto_refresh_report(response: AlarmResponse, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return format_alarm_report(
        response,
        title=f"AUTO REFRESH ALARMS ({now.strftime('%H:%M:%S')})",
        with_location=False,
    )


def format_alarm_log_entry(alarms: List[Alarm], now: Optional[datetime] = None) -> str:
    """Block appended to an alarm log file; empty string when there is nothing to log."""
    if not alarms:
        return ''
    now = now or datetime.now()
    header = f"=== Alarm log at {now.strftime('%Y-%m-%d %H:%M:%S')} ===\n"
    return header + ''.join(format_alarm(alarm) for alarm in alarms)


def format_vehicle(vehicle: Vehicle) -> str:
    lines = [
        f"Vehicle: {vehicle.name} (ID: {vehicle.id})",
        f"  Company: {vehicle.company_name}",
        f"  Type: {vehicle.vehicle_type}, Band: {vehicle.vehicle_band}, Color: {vehicle.vehicle_color}",
        f"  Owner: {vehicle.owner_name}",
        f"  Engine #: {vehicle.engine_num}, Frame #: {vehicle.frame_num}",
        "  Devices:",
    ]
    for device in vehicle.devices:
        lines.append(f"    - {device.id} ({device.sim})")
        lines.append(f"      Channels: {device.channels}, Channel Name: {device.channel_names}")
        lines.append(f"      Installed: {device.install_time}")
    lines.append(SEPARATOR)
    return '\n'.join(lines) + '\n'


def format_vehicle_report(companies: Iterable[Company], vehicles: Iterable[Vehicle],
                          root_id: int = ROOT_COMPANY_ID) -> str:
    """Company tree followed by per-vehicle details."""
    parts = ["=== COMPANY HIERARCHY ===\n", render_company_tree(companies, root_id), "\n",
             "=== VEHICLE INFORMATION ===\n"]
    parts.extend(format_vehicle(vehicle) for vehicle in vehicles)
    return ''.join(parts)


def format_device_links(all_links: Mapping[str, Dict[str, str]]) -> str:
    """``Found N devices`` followed by each device's named links."""
    parts = [f"Found {len(all_links)} devices\n\n"]
    for device_label, links in all_links.items():
        parts.append(f"Device: {device_label}\n")
        for name, link in links.items():
            parts.append(f"  {name}: {link}\n")
        parts.append(SEPARATOR + "\n")
    return ''.join(parts)


def device_links_filename(account: str, device_count: int, now: Optional[datetime] = None) -> str:
    """``{account}-{N}dev-{YYYY-MM-DD}.txt``"""
    now = now or datetime.now()
    safe_account = ''.join(c if c.isalnum() or c in '-_.' else '_' for c in account) or 'account'
    return f"{safe_account}-{device_count}dev-{now.strftime('%Y-%m-%d')}.txt"
