"""Typed view of the MarketAuctionJob custom resource.

The models validate and serialize the camelCase wire shape stored in the
API server. ``MarketAuctionJob.from_body(job.to_body()) == job`` holds for
every valid job.
"""
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .crd import API_VERSION, KIND
from .errors import InvalidResourceError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|μs|ms|h|m|s)")
_UNIT_SECONDS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "µs": 1e-6,  # micro sign
    "μs": 1e-6,  # greek mu
    "ns": 1e-9,
}


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """Parse a Go style duration string such as ``"10m"``, ``"1h30m"`` or ``"500us"``.

    Bare numbers are taken as seconds. Resolution is one microsecond.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            raise ValueError(f"duration must not be negative: {value!r}")
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"unsupported duration value: {value!r}")

    text = value.strip()
    if text == "0":
        return timedelta(0)

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        raise ValueError(f"invalid duration {value!r}, expected e.g. '10m' or '1h30m'")
    return timedelta(seconds=seconds)


def format_duration(value: timedelta) -> str:
    """Render ``value`` in the shortest ``XhYmZs`` form."""
    micros = value // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    hours, micros = divmod(micros, 3_600_000_000)
    minutes, micros = divmod(micros, 60_000_000)
    seconds, micros = divmod(micros, 1_000_000)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds and micros:
        parts.append(f"{seconds}.{micros:06d}".rstrip("0") + "s")
    elif seconds:
        parts.append(f"{seconds}s")
    elif micros % 1000 == 0:
        parts.append(f"{micros // 1000}ms")
    elif micros:
        parts.append(f"{micros}us")
    return "".join(parts)


def advisory_duration(value: Any) -> Union[timedelta, str, None]:
    """Parse a duration the auction rule never reads.

    Strings that do not parse are kept verbatim instead of invalidating the job.
    """
    if value in (None, ""):
        return None
    try:
        return parse_duration(value)
    except ValueError:
        if isinstance(value, str):
            return value
        raise


def dump_advisory_duration(value: Union[timedelta, str, None]) -> Optional[str]:
    if isinstance(value, timedelta):
        return format_duration(value)
    return value


class AuctionState(str, Enum):
    PENDING = "Pending"
    SCHEDULED = "Scheduled"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AuctionState.SCHEDULED, AuctionState.FAILED)


class ResourceIdentity(NamedTuple):
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ResourceRequirements(_WireModel):
    gpus: int = Field(default=0, ge=0, description="Number of GPUs required")
    memory_gib: int = Field(default=0, ge=0, alias="memoryGiB", description="Memory required in GiB")


class JobRequest(_WireModel):
    name: str = Field(min_length=1)
    resource_requirements: ResourceRequirements = Field(default_factory=ResourceRequirements)


class Bid(_WireModel):
    price: float = Field(ge=0, allow_inf_nan=False, description="Price per allocation")
    max_time_until_start: Optional[Union[timedelta, str]] = Field(
        default=None, description="Longest acceptable delay before the job starts"
    )

    @field_validator("max_time_until_start", mode="before")
    @classmethod
    def parse_delay(cls, value: Any) -> Union[timedelta, str, None]:
        return advisory_duration(value)

    @field_serializer("max_time_until_start")
    def dump_delay(self, value: Union[timedelta, str, None]) -> Optional[str]:
        return dump_advisory_duration(value)


class Constraints(_WireModel):
    maximum_runtime: Optional[Union[timedelta, str]] = None
    is_preemptible: bool = False

    @field_validator("maximum_runtime", mode="before")
    @classmethod
    def parse_runtime(cls, value: Any) -> Union[timedelta, str, None]:
        return advisory_duration(value)

    @field_serializer("maximum_runtime")
    def dump_runtime(self, value: Union[timedelta, str, None]) -> Optional[str]:
        return dump_advisory_duration(value)


class AuctionSpec(_WireModel):
    job_request: JobRequest
    bids: Dict[str, Bid] = Field(default_factory=dict)
    constraints: Constraints = Field(default_factory=Constraints)


class AuctionStatus(_WireModel):
    scheduled_cluster: Optional[str] = None
    allocated_gpus: Optional[int] = Field(default=None, ge=0, alias="allocatedGPUs")
    clearing_price: Optional[float] = Field(default=None, ge=0)
    start_time: Optional[datetime] = None
    state: AuctionState = AuctionState.PENDING
    message: Optional[str] = None

    @field_validator("state", mode="before")
    @classmethod
    def absent_state_is_pending(cls, value: Any) -> Any:
        return AuctionState.PENDING if value in (None, "") else value

    @field_validator("start_time")
    @classmethod
    def normalize_start_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        # stored with second precision in UTC, like metav1.Time
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(microsecond=0)

    @field_serializer("start_time")
    def dump_start_time(self, value: Optional[datetime]) -> Optional[str]:
        return None if value is None else value.strftime("%Y-%m-%dT%H:%M:%SZ")

    @model_validator(mode="after")
    def cluster_only_when_scheduled(self) -> "AuctionStatus":
        if self.state is AuctionState.SCHEDULED and not self.scheduled_cluster:
            raise ValueError("scheduledCluster is required when state is Scheduled")
        if self.state is not AuctionState.SCHEDULED and self.scheduled_cluster:
            raise ValueError(f"scheduledCluster must be empty when state is {self.state.value}")
        return self

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ObjectMeta(_WireModel):
    name: str = Field(min_length=1)
    namespace: str = Field(min_length=1)
    resource_version: Optional[str] = None
    uid: Optional[str] = None


class MarketAuctionJob(_WireModel):
    api_version: str = API_VERSION
    kind: str = KIND
    metadata: ObjectMeta
    spec: AuctionSpec
    status: AuctionStatus = Field(default_factory=AuctionStatus)

    @field_validator("status", mode="before")
    @classmethod
    def missing_status(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def identity(self) -> ResourceIdentity:
        return ResourceIdentity(self.metadata.namespace, self.metadata.name)

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "MarketAuctionJob":
        """Validate a raw API object, raising InvalidResourceError on schema violations."""
        try:
            return cls.model_validate(body)
        except ValidationError as exc:
            meta = body.get("metadata") or {}
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            )
            raise InvalidResourceError(
                f"{KIND} {meta.get('namespace')}/{meta.get('name')} is invalid: {problems}"
            ) from exc

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
