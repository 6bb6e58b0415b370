"""
Equipment status decoder for CMS telemetry

Every device status sample carries four 32-bit words (s1..s4). Each named
flag lives at a fixed bit position or bit range in one of those words.
The whole mapping is the STATUS_FIELDS table below; decode_status() walks it
with a single generic extractor, so the table is the protocol documentation.
"""
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, NamedTuple

WORD_MASK = 0xFFFFFFFF

# s3 bits 28-29
POSITIONING_TYPES = {
    0: 'GPS',
    1: 'Base station',
    2: 'WiFi',
}

# s4 bits 0-2
COORDINATE_SYSTEMS = {
    0: 'WGS84',
    1: 'GCJ-02',
    2: 'BD09',
}


class StatusField(NamedTuple):
    """Location of one status flag: word index (1-4), lowest bit, bit count"""
    name: str
    word: int
    shift: int
    width: int = 1


STATUS_FIELDS = (
    # s1 - vehicle and terminal state
    StatusField('gps_valid', 1, 0),
    StatusField('acc_on', 1, 1),
    StatusField('left_turn', 1, 2),
    StatusField('right_turn', 1, 3),
    StatusField('fatigue_warning', 1, 4),
    StatusField('forward_rotation', 1, 5),
    StatusField('reverse', 1, 6),
    StatusField('gps_antenna_present', 1, 7),
    StatusField('hard_drive_status', 1, 8, 2),
    StatusField('module_3g_status', 1, 10, 3),
    StatusField('quiescent', 1, 13),
    StatusField('overspeed', 1, 14),
    StatusField('gps_supplement', 1, 15),
    StatusField('battery_status', 1, 16),
    StatusField('night_mode', 1, 17),
    StatusField('overcrowding', 1, 18),
    StatusField('parking_acc', 1, 19),
    StatusField('io1', 1, 20),
    StatusField('io2', 1, 21),
    StatusField('io3', 1, 22),
    StatusField('io4', 1, 23),
    StatusField('io5', 1, 24),
    StatusField('io6', 1, 25),
    StatusField('io7', 1, 26),
    StatusField('io8', 1, 27),
    StatusField('drive2_status', 1, 28),
    StatusField('hard_disk2_status', 1, 29, 2),
    StatusField('hard_disk_invalid', 1, 31),

    # s2 - area, traffic and platform alarms (bit 16 is reserved)
    StatusField('out_of_area_alarm', 2, 0),
    StatusField('line_alarm', 2, 1),
    StatusField('high_speed_in_area', 2, 2),
    StatusField('low_speed_in_area', 2, 3),
    StatusField('high_speed_outside_area', 2, 4),
    StatusField('low_speed_outside_area', 2, 5),
    StatusField('parking_in_area', 2, 6),
    StatusField('out_of_area_parking', 2, 7),
    StatusField('daily_flow_warning', 2, 8),
    StatusField('daily_flow_exceeded', 2, 9),
    StatusField('monthly_traffic_warning', 2, 10),
    StatusField('monthly_flow_exceeded', 2, 11),
    StatusField('backup_battery_powered', 2, 12),
    StatusField('door_open', 2, 13),
    StatusField('vehicle_fortification', 2, 14),
    StatusField('battery_voltage_low', 2, 15),
    StatusField('engine_status', 2, 17),
    StatusField('last_valid_gps_info', 2, 18),
    StatusField('on_board_status', 2, 19),
    StatusField('operation_status', 2, 20),
    StatusField('lat_lng_not_encrypted', 2, 21),
    StatusField('oil_circuit_disconnected', 2, 22),
    StatusField('circuit_disconnected', 2, 23),
    StatusField('door_locked', 2, 24),
    StatusField('area_overspeed_platform', 2, 25),
    StatusField('area_overspeed_platform2', 2, 26),
    StatusField('into_area_alarm', 2, 27),
    StatusField('line_offset', 2, 28),
    StatusField('time_period_overspeed', 2, 29),
    StatusField('time_period_low_speed', 2, 30),
    StatusField('fatigue_driving_platform', 2, 31),

    # s3 - channel bitmaps, extended IO, positioning
    StatusField('video_lost_channels', 3, 0, 8),
    StatusField('video_channels', 3, 8, 8),
    StatusField('io_inputs_9_16', 3, 16, 8),
    StatusField('io_outputs_1_4', 3, 24, 4),
    StatusField('positioning_type', 3, 28, 2),
    StatusField('abnormal_driving_state', 3, 30),
    StatusField('mountain_forbidden_line', 3, 31),

    # s4 - coordinate system and JT/T 808 alarms
    StatusField('coordinate_system', 4, 0, 3),
    StatusField('emergency_alarm', 4, 3),
    StatusField('area_overspeed_alarm', 4, 4),
    StatusField('fatigue_driving_report', 4, 5),
    StatusField('dangerous_driving_alarm', 4, 6),
    StatusField('gnss_module_fault', 4, 7),
    StatusField('gnss_antenna_disconnected', 4, 8),
    StatusField('gnss_antenna_short', 4, 9),
    StatusField('terminal_lcd_fault', 4, 10),
    StatusField('tts_module_fault', 4, 11),
    StatusField('camera_failure', 4, 12),
    StatusField('cumulative_driving_overtime', 4, 13),
    StatusField('overtime_parking', 4, 14),
    StatusField('into_area', 4, 15),
    StatusField('route_alarm', 4, 16),
    StatusField('travel_time_abnormal', 4, 17),
    StatusField('route_deviation_alarm', 4, 18),
    StatusField('vss_failure', 4, 19),
    StatusField('fuel_quantity_abnormal', 4, 20),
    StatusField('vehicle_theft_alarm', 4, 21),
    StatusField('illegal_ignition_alarm', 4, 22),
    StatusField('illegal_displacement_alarm', 4, 23),
    StatusField('collision_rollover_alarm', 4, 24),
    StatusField('overtime_stop', 4, 25),
    StatusField('key_point_not_reached', 4, 26),
    StatusField('line_overspeed_alarm', 4, 27),
    StatusField('line_low_speed_alarm', 4, 28),
    StatusField('road_overspeed_alarm', 4, 29),
    StatusField('out_of_area_alarm_platform', 4, 30),
    StatusField('key_point_not_left', 4, 31),
)


@dataclass(frozen=True)
class EquipmentStatus:
    """Decoded s1..s4 status words"""
    # s1
    gps_valid: bool
    acc_on: bool
    left_turn: bool
    right_turn: bool
    fatigue_warning: bool
    forward_rotation: bool
    reverse: bool
    gps_antenna_present: bool
    hard_drive_status: int        # 0=absent, 1=present, 2=powered down
    module_3g_status: int
    quiescent: bool
    overspeed: bool
    gps_supplement: bool
    battery_status: bool
    night_mode: bool
    overcrowding: bool
    parking_acc: bool
    io1: bool
    io2: bool
    io3: bool
    io4: bool
    io5: bool
    io6: bool
    io7: bool
    io8: bool
    drive2_status: bool
    hard_disk2_status: int
    hard_disk_invalid: bool

    # s2
    out_of_area_alarm: bool
    line_alarm: bool
    high_speed_in_area: bool
    low_speed_in_area: bool
    high_speed_outside_area: bool
    low_speed_outside_area: bool
    parking_in_area: bool
    out_of_area_parking: bool
    daily_flow_warning: bool
    daily_flow_exceeded: bool
    monthly_traffic_warning: bool
    monthly_flow_exceeded: bool
    backup_battery_powered: bool
    door_open: bool
    vehicle_fortification: bool
    battery_voltage_low: bool
    engine_status: bool
    last_valid_gps_info: bool
    on_board_status: bool         # 0=no load, 1=heavy load
    operation_status: bool        # 1=shutdown
    lat_lng_not_encrypted: bool
    oil_circuit_disconnected: bool
    circuit_disconnected: bool
    door_locked: bool
    area_overspeed_platform: bool
    area_overspeed_platform2: bool
    into_area_alarm: bool
    line_offset: bool
    time_period_overspeed: bool
    time_period_low_speed: bool
    fatigue_driving_platform: bool

    # s3
    video_lost_channels: int
    video_channels: int
    io_inputs_9_16: int
    io_outputs_1_4: int
    positioning_type: int
    abnormal_driving_state: bool
    mountain_forbidden_line: bool

    # s4
    coordinate_system: int
    emergency_alarm: bool
    area_overspeed_alarm: bool
    fatigue_driving_report: bool
    dangerous_driving_alarm: bool
    gnss_module_fault: bool
    gnss_antenna_disconnected: bool
    gnss_antenna_short: bool
    terminal_lcd_fault: bool
    tts_module_fault: bool
    camera_failure: bool
    cumulative_driving_overtime: bool
    overtime_parking: bool
    into_area: bool
    route_alarm: bool
    travel_time_abnormal: bool
    route_deviation_alarm: bool
    vss_failure: bool
    fuel_quantity_abnormal: bool
    vehicle_theft_alarm: bool
    illegal_ignition_alarm: bool
    illegal_displacement_alarm: bool
    collision_rollover_alarm: bool
    overtime_stop: bool
    key_point_not_reached: bool
    line_overspeed_alarm: bool
    line_low_speed_alarm: bool
    road_overspeed_alarm: bool
    out_of_area_alarm_platform: bool
    key_point_not_left: bool

    @property
    def positioning_type_name(self) -> str:
        return POSITIONING_TYPES.get(self.positioning_type, 'Unknown')

    @property
    def coordinate_system_name(self) -> str:
        return COORDINATE_SYSTEMS.get(self.coordinate_system, 'Unknown')

    def lost_video_channels(self) -> List[int]:
        """Zero-based channels whose video signal is lost"""
        return _set_bits(self.video_lost_channels, 8)

    def active_video_channels(self) -> List[int]:
        return _set_bits(self.video_channels, 8)

    def active_io_outputs(self) -> List[int]:
        """One-based IO outputs (1-4) that are switched on"""
        return [bit + 1 for bit in _set_bits(self.io_outputs_1_4, 4)]

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _set_bits(value: int, width: int) -> List[int]:
    return [bit for bit in range(width) if value & (1 << bit)]


def extract_field(words: Mapping[int, int], field: StatusField):
    """Extract one field from normalised (unsigned) words.

    Single-bit fields become bool, ranges become int.
    """
    raw = (words[field.word] >> field.shift) & ((1 << field.width) - 1)
    if field.width == 1:
        return raw != 0
    return raw


def decode_status(s1: int, s2: int, s3: int, s4: int) -> EquipmentStatus:
    """Decode the four status words into an EquipmentStatus.

    Total for any integers: each word is reduced to its unsigned 32-bit
    pattern first, so a sign-extended negative value (bit 31 set on a
    signed source) decodes the same as its unsigned equivalent.
    """
    words = {
        1: int(s1) & WORD_MASK,
        2: int(s2) & WORD_MASK,
        3: int(s3) & WORD_MASK,
        4: int(s4) & WORD_MASK,
    }
    return EquipmentStatus(**{f.name: extract_field(words, f) for f in STATUS_FIELDS})


def _safe_int(value: Any) -> int:
    try:
        return int(float(value)) if value else 0
    except (ValueError, TypeError):
        return 0


def decode_status_record(record: Mapping[str, Any]) -> EquipmentStatus:
    """Decode the s1..s4 keys of a raw device status/track record.

    Missing or unparsable words count as zero.
    """
    return decode_status(
        _safe_int(record.get('s1')),
        _safe_int(record.get('s2')),
        _safe_int(record.get('s3')),
        _safe_int(record.get('s4')),
    )


# describe_status() picks these, in display order
_SUMMARY_FLAGS = (
    ('gps_valid', 'GPS Valid'),
    ('acc_on', 'ACC On'),
    ('left_turn', 'Left Turn'),
    ('right_turn', 'Right Turn'),
    ('quiescent', 'Quiescent'),
    ('overspeed', 'Overspeeding'),
    ('battery_status', 'Battery Low'),
    ('night_mode', 'Night Mode'),
    ('door_open', 'Door Open'),
)

_SUMMARY_ALARMS = (
    ('emergency_alarm', 'Emergency'),
    ('area_overspeed_alarm', 'Area Overspeed'),
    ('fatigue_driving_report', 'Fatigue Driving'),
    ('dangerous_driving_alarm', 'Dangerous Driving'),
    ('vehicle_theft_alarm', 'Vehicle Theft'),
    ('illegal_ignition_alarm', 'Illegal Ignition'),
    ('collision_rollover_alarm', 'Collision/Rollover'),
)


def describe_status(status: EquipmentStatus) -> str:
    """Short human-readable summary, e.g. ``GPS Valid, ACC On, ALARMS: Emergency``"""
    descriptions = [label for name, label in _SUMMARY_FLAGS if getattr(status, name)]

    alarms = [label for name, label in _SUMMARY_ALARMS if getattr(status, name)]
    if alarms:
        descriptions.append(f"ALARMS: {', '.join(alarms)}")

    return ', '.join(descriptions)
