"""CMS API response schemas. Field aliases are the wire keys of the StandardApiAction JSON."""
from enum import IntEnum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, model_validator

COORDINATE_DIVISOR = 1000000.0
SPEED_DIVISOR = 10.0


class CoordSystem(IntEnum):
    """toMap selector for server-side re-projection of alarm coordinates"""
    WGS84 = 0
    GOOGLE = 1      # GCJ-02
    BAIDU = 2       # BD09


def _drop_nulls(data: Any) -> Any:
    # The CMS sends null for absent values; treat them as missing so defaults apply
    if isinstance(data, dict):
        return {key: value for key, value in data.items() if value is not None}
    return data


class WireModel(BaseModel):
    """Base for every decoded record: immutable, accepts wire keys or field names"""
    # Ids arrive as numbers or strings depending on server version
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra='ignore',
                              coerce_numbers_to_str=True)

    @model_validator(mode='before')
    @classmethod
    def _nulls_to_defaults(cls, data: Any) -> Any:
        return _drop_nulls(data)


class ApiResponse(WireModel):
    """Every CMS response carries a result code (0 = success)"""
    result: int = -1
    # Set by the client, never read from the wire
    insecure: bool = Field(default=False, exclude=True)

    @model_validator(mode='before')
    @classmethod
    def _strip_client_fields(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'insecure' in data:
            return {key: value for key, value in data.items() if key != 'insecure'}
        return data


# =============================================================================
# Login / device list
# =============================================================================

class LoginResponse(ApiResponse):
    jsession: str = ''


class Device(WireModel):
    """Online device: vehicle id + device id"""
    vid: str = ''
    did: str = ''

    @property
    def label(self) -> str:
        return f"{self.vid} ({self.did})"


class DeviceStatusResponse(ApiResponse):
    onlines: List[Device] = Field(default_factory=list)


# =============================================================================
# Vehicle / company info
# =============================================================================

class Company(WireModel):
    id: int = 0
    name: str = Field(default='', alias='nm')
    parent_id: int = Field(default=0, alias='pId')


class VehicleDevice(WireModel):
    id: str = ''
    channels: int = Field(default=0, alias='cc')
    channel_names: str = Field(default='', alias='cn')
    sim: str = ''
    install_time: str = Field(default='', alias='ist')


class Vehicle(WireModel):
    id: int = 0
    name: str = Field(default='', alias='nm')
    pid: int = 0
    company_name: str = Field(default='', alias='pnm')
    devices: List[VehicleDevice] = Field(default_factory=list, alias='dl')
    vehicle_type: str = Field(default='', alias='vehiType')
    vehicle_color: str = Field(default='', alias='vehiColor')
    vehicle_band: str = Field(default='', alias='vehiBand')
    owner_name: str = Field(default='', alias='ownerName')
    engine_num: str = Field(default='', alias='engineNum')
    frame_num: str = Field(default='', alias='frameNum')


class VehicleResponse(ApiResponse):
    companys: List[Company] = Field(default_factory=list)
    vehicles: List[Vehicle] = Field(default_factory=list)


# =============================================================================
# Alarms
# =============================================================================

class AlarmGps(WireModel):
    """GPS snapshot attached to an alarm"""
    dct: int = 0
    gd: int = 0
    gt: str = ''
    hx: int = 0                 # heading
    lat: int = 0                # degrees * 1e6
    lc: int = 0                 # mileage
    lid: int = 0
    lng: int = 0                # degrees * 1e6
    mlat: str = ''              # mapped (toMap) latitude
    mlng: str = ''
    sp: int = 0                 # km/h * 10

    @property
    def latitude(self) -> float:
        return self.lat / COORDINATE_DIVISOR

    @property
    def longitude(self) -> float:
        return self.lng / COORDINATE_DIVISOR

    @property
    def speed_kmh(self) -> float:
        return self.sp / SPEED_DIVISOR

    @property
    def has_position(self) -> bool:
        return self.lat != 0 and self.lng != 0


class Alarm(WireModel):
    dev_idno: str = Field(default='', alias='DevIDNO')
    desc: str = ''
    guid: str = ''
    hd: int = 0                 # 1 = processed
    img: str = ''
    info: int = 0
    p1: int = 0
    p2: int = 0
    p3: int = 0
    p4: int = 0
    src_tm: str = Field(default='', alias='srcTm')
    st_type: int = Field(default=0, alias='stType')
    time: str = ''
    type: int = 0
    gps: AlarmGps = Field(default_factory=AlarmGps, alias='Gps')

    @property
    def processed(self) -> bool:
        return self.hd == 1


class Pagination(WireModel):
    total_pages: int = Field(default=0, alias='totalPages')
    current_page: int = Field(default=0, alias='currentPage')
    page_records: int = Field(default=0, alias='pageRecords')
    total_records: int = Field(default=0, alias='totalRecords')


class AlarmResponse(ApiResponse):
    alarmlist: List[Alarm] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
