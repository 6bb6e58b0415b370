"""
CMS Client Module
"""
from .errors import (
    CMSError,
    TransportError,
    DecodeError,
    APIResultError,
    AuthError,
    HierarchyCycleError,
)
from .models import (
    CoordSystem,
    Device,
    DeviceStatusResponse,
    Company,
    Vehicle,
    VehicleDevice,
    VehicleResponse,
    Alarm,
    AlarmGps,
    Pagination,
    AlarmResponse,
)
from .status_decoder import EquipmentStatus, STATUS_FIELDS, decode_status, decode_status_record, describe_status
from .session_client import CMSSessionClient, Session
from .link_builder import LinkBuilder, RTSPLinkOptions, RTMPLinkOptions, HLSLinkOptions, hls_video_tag
from .hierarchy import ROOT_COMPANY_ID, build_forest, render_tree, render_company_tree
from .alarm_poller import AlarmPoller, AlarmQuery, AlarmSelection, PollerState

__all__ = [
    # Errors
    'CMSError',
    'TransportError',
    'DecodeError',
    'APIResultError',
    'AuthError',
    'HierarchyCycleError',
    # Models
    'CoordSystem',
    'Device',
    'DeviceStatusResponse',
    'Company',
    'Vehicle',
    'VehicleDevice',
    'VehicleResponse',
    'Alarm',
    'AlarmGps',
    'Pagination',
    'AlarmResponse',
    # Status decoding
    'EquipmentStatus',
    'STATUS_FIELDS',
    'decode_status',
    'decode_status_record',
    'describe_status',
    # API
    'CMSSessionClient',
    'Session',
    # Links
    'LinkBuilder',
    'RTSPLinkOptions',
    'RTMPLinkOptions',
    'HLSLinkOptions',
    'hls_video_tag',
    # Hierarchy
    'ROOT_COMPANY_ID',
    'build_forest',
    'render_tree',
    'render_company_tree',
    # Polling
    'AlarmPoller',
    'AlarmQuery',
    'AlarmSelection',
    'PollerState',
]
