"""
Protocol constants for adapterd.

HCI opcode groups/commands, scan-enable bits, class-of-device tables and the
D-Bus names exposed by the adapter control interface.
"""

# D-Bus Core Constants
DBUS_PROPERTIES = "org.freedesktop.DBus.Properties"
INTROSPECT_INTERFACE = "org.freedesktop.DBus.Introspectable"

# BlueZ Core Constants
ADAPTER_NAME = "hci0"
BLUEZ_SERVICE_NAME = "org.bluez"
BLUEZ_NAMESPACE = "/org/bluez/"
ADAPTER_INTERFACE = BLUEZ_SERVICE_NAME + ".Adapter"
ERROR_INTERFACE = BLUEZ_SERVICE_NAME + ".Error"

# Scan modes (labels exchanged on the bus)
MODE_OFF = "off"
MODE_CONNECTABLE = "connectable"
MODE_DISCOVERABLE = "discoverable"
MODE_UNKNOWN = "unknown"

# Scan enable bits
SCAN_DISABLED = 0x00
SCAN_INQUIRY = 0x01
SCAN_PAGE = 0x02

# HCI packet types
HCI_COMMAND_PKT = 0x01
HCI_EVENT_PKT = 0x04

# HCI events
EVT_INQUIRY_COMPLETE = 0x01
EVT_DISCONN_COMPLETE = 0x05
EVT_CMD_COMPLETE = 0x0E
EVT_CMD_STATUS = 0x0F

# HCI opcode groups
OGF_LINK_CTL = 0x01
OGF_HOST_CTL = 0x03
OGF_INFO_PARAM = 0x04
OGF_STATUS_PARAM = 0x05

# OGF_LINK_CTL commands
OCF_INQUIRY = 0x0001
OCF_INQUIRY_CANCEL = 0x0002
OCF_DISCONNECT = 0x0006
OCF_AUTH_REQUESTED = 0x0011

# OGF_HOST_CTL commands
OCF_DELETE_STORED_LINK_KEY = 0x0012
OCF_CHANGE_LOCAL_NAME = 0x0013
OCF_READ_LOCAL_NAME = 0x0014
OCF_READ_SCAN_ENABLE = 0x0019
OCF_WRITE_SCAN_ENABLE = 0x001A
OCF_READ_CLASS_OF_DEV = 0x0023
OCF_WRITE_CLASS_OF_DEV = 0x0024

# OGF_INFO_PARAM commands
OCF_READ_LOCAL_VERSION = 0x0001

# OGF_STATUS_PARAM commands
OCF_READ_ENCRYPTION_KEY_SIZE = 0x0008

# Link types
SCO_LINK = 0x00
ACL_LINK = 0x01

# Disconnect reasons
HCI_OE_USER_ENDED_CONNECTION = 0x13

# Inquiry parameters: general inquiry access code, 8 x 1.28s, unlimited responses
GIAC_LAP = 0x9E8B33
INQUIRY_LENGTH = 8
INQUIRY_NUM_RSP = 0

HCI_MAX_NAME_LENGTH = 248

# Class of device
MAJOR_CLASS_COMPUTER = 0x01
MAJOR_CLASS_MASK = 0x1F

SERVICE_CLASSES = (
    "positioning",
    "networking",
    "rendering",
    "capturing",
    "object transfer",
    "audio",
    "telephony",
    "information",
)

COMPUTER_MINOR_CLASSES = (
    "uncategorized",
    "desktop",
    "server",
    "laptop",
    "handheld",
    "palm",
    "wearable",
)

# Attribute store categories
STORE_NAMES = "names"
STORE_ALIASES = "aliases"
STORE_MANUFACTURERS = "manufacturers"
STORE_LASTSEEN = "lastseen"
STORE_LASTUSED = "lastused"
STORE_LINKKEYS = "linkkeys"
STORE_CONFIG = "config"

# Change notifications
SIG_MINOR_CLASS_CHANGED = "MinorClassChanged"
SIG_REMOTE_ALIAS_CHANGED = "RemoteAliasChanged"
SIG_BONDING_REMOVED = "BondingRemoved"

# Wire error code layout
BLUEZ_EBT_OFFSET = 0x00000000
BLUEZ_EDBUS_OFFSET = 0x00010000
BLUEZ_ESYSTEM_OFFSET = 0x00020000

BLUEZ_EDBUS_UNKNOWN_METHOD = BLUEZ_EDBUS_OFFSET + 0x0001
BLUEZ_EDBUS_WRONG_SIGNATURE = BLUEZ_EDBUS_OFFSET + 0x0002
BLUEZ_EDBUS_WRONG_PARAM = BLUEZ_EDBUS_OFFSET + 0x0003
BLUEZ_EDBUS_RECORD_NOT_FOUND = BLUEZ_EDBUS_OFFSET + 0x0004
BLUEZ_EDBUS_NO_MEM = BLUEZ_EDBUS_OFFSET + 0x0005
BLUEZ_EDBUS_CONN_NOT_FOUND = BLUEZ_EDBUS_OFFSET + 0x0006
BLUEZ_EDBUS_UNKNOWN_PATH = BLUEZ_EDBUS_OFFSET + 0x0007
BLUEZ_EDBUS_NOT_IMPLEMENTED = BLUEZ_EDBUS_OFFSET + 0x0008
