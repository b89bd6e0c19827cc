"""Wire constants of the SmartCast control API and SSDP discovery."""

from __future__ import annotations

SSDP_MULTICAST_ADDRESS = "239.255.255.250"
SSDP_PORT = 1900
SSDP_SEARCH_TARGET = "urn:dial-multiscreen-org:device:dial:1"
SSDP_MX = 3

# Newer firmware listens on 7345, older on 9000.
API_PORT_OPTIONS = (7345, 9000)
DEFAULT_API_PORT = API_PORT_OPTIONS[0]
DEFAULT_TIMEOUT = 5.0

AUTH_HEADER = "AUTH"

PAIRING_START = "/pairing/start"
PAIRING_FINISH = "/pairing/pair"
PAIRING_CANCEL = "/pairing/cancel"

POWER_STATE = "/state/device/power_mode"
DEVICE_INFO = "/state/device/deviceinfo"
KEY_COMMAND = "/key_command/"
CURRENT_INPUT = "/menu_native/dynamic/tv_settings/devices/current_input"
INPUT_LIST = "/menu_native/dynamic/tv_settings/devices/name_input"

SETTINGS_DYNAMIC_BASE = "/menu_native/dynamic"
SETTINGS_STATIC_BASE = "/menu_native/static"
TV_SETTINGS_ROOT = "tv_settings"
AUDIO_SETTINGS_ROOT = "audio_settings"

# PIN used when the device shows no PIN (sound bars) and for cancel requests.
SPEAKER_PIN = "0000"
CANCEL_PIN = "1111"

RESULT_SUCCESS = "success"

RESULT_CODES: dict[str, str] = {
    "invalid_parameter": "Invalid parameter",
    "uri_not_found": "URI not found",
    "max_challenges_exceeded": "Too many failed pair attempts",
    "pairing_denied": "Incorrect pin",
    "value_out_of_range": "Value out of range",
    "challenge_incorrect": "Incorrect challenge",
    "blocked": "Pairing is already in progress",
    "failure": "Unknown command failure",
    "aborted": "Unknown abort",
    "busy": "Device is busy",
    "requires_pairing": "Device requires pairing",
    "requires_system_pin": "Device requires system pin",
    "requires_new_system_pin": "Device requires new system pin",
    "net_wifi_needs_valid_ssid": "Wifi needs SSID",
    "net_wifi_already_connected": "Wifi already connected",
    "net_wifi_missing_password": "Wifi needs password",
    "net_wifi_not_existed": "Wifi network does not exist",
    "net_wifi_auth_rejected": "Wifi authentication rejected",
    "net_wifi_connect_timeout": "Wifi connection timeout",
    "net_wifi_connect_aborted": "Wifi connection aborted",
    "net_wifi_connection_error": "Wifi connection error",
    "net_ip_manual_config_error": "IP config error",
    "net_ip_dhcp_failed": "DHCP failure",
    "net_unknown_error": "Unknown network error",
    "http_401": "Unauthorized",
    "http_403": "Forbidden",
}

AUTH_FAILURE_CODES = frozenset({"requires_pairing", "http_401", "http_403"})

PAIR_REJECTION_CODES = frozenset(
    {
        "pairing_denied",
        "challenge_incorrect",
        "invalid_parameter",
        "value_out_of_range",
        "max_challenges_exceeded",
        "blocked",
    }
)
