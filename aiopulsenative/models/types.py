"""Enumerations used by the PulseAudio native protocol."""

from enum import Enum, IntEnum, IntFlag


class TagType(Enum):
    """Type marker byte preceding every value of a tagged payload."""

    INVALID = 0
    STRING = ord("t")
    STRING_NULL = ord("N")
    U32 = ord("L")
    U8 = ord("B")
    U64 = ord("R")
    S64 = ord("r")
    SAMPLE_SPEC = ord("a")
    ARBITRARY = ord("x")
    BOOLEAN_TRUE = ord("1")
    BOOLEAN_FALSE = ord("0")
    TIMEVAL = ord("T")
    USEC = ord("U")
    CHANNEL_MAP = ord("m")
    CVOLUME = ord("v")
    PROPLIST = ord("P")
    VOLUME = ord("V")
    FORMAT_INFO = ord("f")


class Command(IntEnum):
    """Native protocol command codes, in wire order."""

    # Generic commands
    ERROR = 0
    TIMEOUT = 1
    REPLY = 2

    # Client -> server
    CREATE_PLAYBACK_STREAM = 3
    DELETE_PLAYBACK_STREAM = 4
    CREATE_RECORD_STREAM = 5
    DELETE_RECORD_STREAM = 6
    EXIT = 7
    AUTH = 8
    SET_CLIENT_NAME = 9
    LOOKUP_SINK = 10
    LOOKUP_SOURCE = 11
    DRAIN_PLAYBACK_STREAM = 12
    STAT = 13
    GET_PLAYBACK_LATENCY = 14
    CREATE_UPLOAD_STREAM = 15
    DELETE_UPLOAD_STREAM = 16
    FINISH_UPLOAD_STREAM = 17
    PLAY_SAMPLE = 18
    REMOVE_SAMPLE = 19

    GET_SERVER_INFO = 20
    GET_SINK_INFO = 21
    GET_SINK_INFO_LIST = 22
    GET_SOURCE_INFO = 23
    GET_SOURCE_INFO_LIST = 24
    GET_MODULE_INFO = 25
    GET_MODULE_INFO_LIST = 26
    GET_CLIENT_INFO = 27
    GET_CLIENT_INFO_LIST = 28
    GET_SINK_INPUT_INFO = 29
    GET_SINK_INPUT_INFO_LIST = 30
    GET_SOURCE_OUTPUT_INFO = 31
    GET_SOURCE_OUTPUT_INFO_LIST = 32
    GET_SAMPLE_INFO = 33
    GET_SAMPLE_INFO_LIST = 34
    SUBSCRIBE = 35

    SET_SINK_VOLUME = 36
    SET_SINK_INPUT_VOLUME = 37
    SET_SOURCE_VOLUME = 38

    SET_SINK_MUTE = 39
    SET_SOURCE_MUTE = 40

    CORK_PLAYBACK_STREAM = 41
    FLUSH_PLAYBACK_STREAM = 42
    TRIGGER_PLAYBACK_STREAM = 43

    SET_DEFAULT_SINK = 44
    SET_DEFAULT_SOURCE = 45

    SET_PLAYBACK_STREAM_NAME = 46
    SET_RECORD_STREAM_NAME = 47

    KILL_CLIENT = 48
    KILL_SINK_INPUT = 49
    KILL_SOURCE_OUTPUT = 50

    LOAD_MODULE = 51
    UNLOAD_MODULE = 52

    ADD_AUTOLOAD_OBSOLETE = 53
    REMOVE_AUTOLOAD_OBSOLETE = 54
    GET_AUTOLOAD_INFO_OBSOLETE = 55
    GET_AUTOLOAD_INFO_LIST_OBSOLETE = 56

    GET_RECORD_LATENCY = 57
    CORK_RECORD_STREAM = 58
    FLUSH_RECORD_STREAM = 59
    PREBUF_PLAYBACK_STREAM = 60

    # Server -> client
    REQUEST = 61
    OVERFLOW = 62
    UNDERFLOW = 63
    PLAYBACK_STREAM_KILLED = 64
    RECORD_STREAM_KILLED = 65
    SUBSCRIBE_EVENT = 66

    # A few more client -> server commands
    MOVE_SINK_INPUT = 67
    MOVE_SOURCE_OUTPUT = 68
    SET_SINK_INPUT_MUTE = 69
    SUSPEND_SINK = 70
    SUSPEND_SOURCE = 71

    SET_PLAYBACK_STREAM_BUFFER_ATTR = 72
    SET_RECORD_STREAM_BUFFER_ATTR = 73

    UPDATE_PLAYBACK_STREAM_SAMPLE_RATE = 74
    UPDATE_RECORD_STREAM_SAMPLE_RATE = 75

    # Server -> client
    PLAYBACK_STREAM_SUSPENDED = 76
    RECORD_STREAM_SUSPENDED = 77
    PLAYBACK_STREAM_MOVED = 78
    RECORD_STREAM_MOVED = 79

    UPDATE_RECORD_STREAM_PROPLIST = 80
    UPDATE_PLAYBACK_STREAM_PROPLIST = 81
    UPDATE_CLIENT_PROPLIST = 82
    REMOVE_RECORD_STREAM_PROPLIST = 83
    REMOVE_PLAYBACK_STREAM_PROPLIST = 84
    REMOVE_CLIENT_PROPLIST = 85

    # Server -> client
    STARTED = 86

    EXTENSION = 87

    GET_CARD_INFO = 88
    GET_CARD_INFO_LIST = 89
    SET_CARD_PROFILE = 90

    CLIENT_EVENT = 91
    PLAYBACK_STREAM_EVENT = 92
    RECORD_STREAM_EVENT = 93

    # Server -> client
    PLAYBACK_BUFFER_ATTR_CHANGED = 94
    RECORD_BUFFER_ATTR_CHANGED = 95

    SET_SINK_PORT = 96
    SET_SOURCE_PORT = 97

    SET_SOURCE_OUTPUT_VOLUME = 98
    SET_SOURCE_OUTPUT_MUTE = 99

    SET_PORT_LATENCY_OFFSET = 100

    # Both directions
    ENABLE_SRBCHANNEL = 101
    DISABLE_SRBCHANNEL = 102

    # Both directions
    REGISTER_MEMFD_SHMID = 103


class ErrorCode(IntEnum):
    """Error codes carried by ERROR replies."""

    description: str

    def __new__(cls, value: int, description: str) -> "ErrorCode":
        """Attach the human-readable description to each member."""
        member = int.__new__(cls, value)
        member._value_ = value
        member.description = description
        return member

    OK = 0, "OK"
    ACCESS = 1, "Access denied"
    COMMAND = 2, "Unknown command"
    INVALID = 3, "Invalid argument"
    EXIST = 4, "Entity exists"
    NOENTITY = 5, "No such entity"
    CONNECTION_REFUSED = 6, "Connection refused"
    PROTOCOL = 7, "Protocol error"
    TIMEOUT = 8, "Timeout"
    AUTHKEY = 9, "No authentication key"
    INTERNAL = 10, "Internal error"
    CONNECTION_TERMINATED = 11, "Connection terminated"
    KILLED = 12, "Entity killed"
    INVALID_SERVER = 13, "Invalid server"
    MODINIT_FAILED = 14, "Module initialization failed"
    BAD_STATE = 15, "Bad state"
    NODATA = 16, "No data"
    VERSION = 17, "Incompatible protocol version"
    TOO_LARGE = 18, "Too large"
    NOT_SUPPORTED = 19, "Not supported"
    UNKNOWN = 20, "Unknown error code"
    NO_EXTENSION = 21, "No such extension"
    OBSOLETE = 22, "Obsolete functionality"
    NOT_IMPLEMENTED = 23, "Missing implementation"
    FORKED = 24, "Client forked"
    IO = 25, "Input/Output error"
    BUSY = 26, "Device or resource busy"


class SubscriptionMask(IntFlag):
    """Facilities a client can subscribe to."""

    NULL = 0x0000
    SINK = 0x0001
    SOURCE = 0x0002
    SINK_INPUT = 0x0004
    SOURCE_OUTPUT = 0x0008
    MODULE = 0x0010
    CLIENT = 0x0020
    SAMPLE_CACHE = 0x0040
    SERVER = 0x0080
    AUTOLOAD = 0x0100
    CARD = 0x0200
    ALL = 0x02FF


class SubscriptionFacility(IntEnum):
    """Facility part (low nibble) of a subscription event."""

    SINK = 0x0000
    SOURCE = 0x0001
    SINK_INPUT = 0x0002
    SOURCE_OUTPUT = 0x0003
    MODULE = 0x0004
    CLIENT = 0x0005
    SAMPLE_CACHE = 0x0006
    SERVER = 0x0007
    AUTOLOAD = 0x0008
    CARD = 0x0009


class SubscriptionEventType(IntEnum):
    """Event type part of a subscription event."""

    NEW = 0x0000
    CHANGE = 0x0010
    REMOVE = 0x0020


SUBSCRIPTION_FACILITY_MASK = 0x000F
SUBSCRIPTION_TYPE_MASK = 0x0030


class SampleFormat(IntEnum):
    """Sample formats of a sample spec."""

    U8 = 0
    ALAW = 1
    ULAW = 2
    S16LE = 3
    S16BE = 4
    FLOAT32LE = 5
    FLOAT32BE = 6
    S32LE = 7
    S32BE = 8
    S24LE = 9
    S24BE = 10
    S24_32LE = 11
    S24_32BE = 12


class FormatEncoding(IntEnum):
    """Stream encodings announced in format infos."""

    ANY = 0
    PCM = 1
    AC3_IEC61937 = 2
    EAC3_IEC61937 = 3
    MPEG_IEC61937 = 4
    DTS_IEC61937 = 5
    MPEG2_AAC_IEC61937 = 6
    TRUEHD_IEC61937 = 7
    DTSHD_IEC61937 = 8


class DeviceState(IntEnum):
    """Run state of a sink or source."""

    INVALID = 0xFFFFFFFF
    """Reported as -1 by the server, seen on the wire as an unsigned value."""
    RUNNING = 0
    IDLE = 1
    SUSPENDED = 2


class PortAvailable(IntEnum):
    """Availability of a sink, source or card port."""

    UNKNOWN = 0
    NO = 1
    YES = 2


class PortDirection(IntFlag):
    """Direction bits of a card port."""

    OUTPUT = 0x0001
    INPUT = 0x0002


class SinkFlags(IntFlag):
    """Capability flags of a sink."""

    NOFLAGS = 0x0000
    HW_VOLUME_CTRL = 0x0001
    LATENCY = 0x0002
    HARDWARE = 0x0004
    NETWORK = 0x0008
    HW_MUTE_CTRL = 0x0010
    DECIBEL_VOLUME = 0x0020
    FLAT_VOLUME = 0x0040
    DYNAMIC_LATENCY = 0x0080
    SET_FORMATS = 0x0100


class SourceFlags(IntFlag):
    """Capability flags of a source."""

    NOFLAGS = 0x0000
    HW_VOLUME_CTRL = 0x0001
    LATENCY = 0x0002
    HARDWARE = 0x0004
    NETWORK = 0x0008
    HW_MUTE_CTRL = 0x0010
    DECIBEL_VOLUME = 0x0020
    DYNAMIC_LATENCY = 0x0040
    FLAT_VOLUME = 0x0080


class AudioServerType(Enum):
    """Implementation behind the native protocol socket."""

    PULSEAUDIO = "PulseAudio"
    PIPEWIRE = "PipeWire"
